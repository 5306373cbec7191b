"""Core module: lightweight re-exports only.

AgentRuntime is NOT imported here; the memory and task packages import
core helpers, and the runtime imports them back. Import it directly:
    from tandem.core.runtime import AgentRuntime
"""

from tandem.core.errors import (
    ConfigurationError,
    DuplicateRegistrationError,
    InvalidUUIDError,
    ModelNotFoundError,
    PluginInitError,
    ServiceNotFoundError,
    SettingNotFoundError,
    TandemError,
    TaskNotFoundError,
)
from tandem.core.ids import as_uuid, new_id, string_to_uuid
from tandem.core.registry import CapabilityRegistry, NamedRegistry

__all__ = [
    "CapabilityRegistry",
    "ConfigurationError",
    "DuplicateRegistrationError",
    "InvalidUUIDError",
    "ModelNotFoundError",
    "NamedRegistry",
    "PluginInitError",
    "ServiceNotFoundError",
    "SettingNotFoundError",
    "TandemError",
    "TaskNotFoundError",
    "as_uuid",
    "new_id",
    "string_to_uuid",
]
