"""Exceptions raised by the runtime core.

Configuration problems fail fast at the call site. Failures inside plugin
handlers are caught by the dispatchers and never surface as these types.
"""

from __future__ import annotations


class TandemError(Exception):
    """Base class for runtime errors."""


class ConfigurationError(TandemError):
    """A required setting is missing or malformed."""


class InvalidUUIDError(ConfigurationError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid UUID format: {value!r}")
        self.value = value


class ModelNotFoundError(ConfigurationError, LookupError):
    def __init__(self, model_type: str) -> None:
        super().__init__(f"No model registered for type '{model_type}'")
        self.model_type = model_type


class ServiceNotFoundError(ConfigurationError, LookupError):
    def __init__(self, service_type: str) -> None:
        super().__init__(f"No service registered for type '{service_type}'")
        self.service_type = service_type


class SettingNotFoundError(ConfigurationError, LookupError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Required setting '{key}' is not configured")
        self.key = key


class DuplicateRegistrationError(TandemError, ValueError):
    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} '{key}' already registered")
        self.kind = kind
        self.key = key


class PluginInitError(TandemError):
    def __init__(self, plugin_name: str, cause: BaseException) -> None:
        super().__init__(f"plugin '{plugin_name}' failed to initialize: {cause}")
        self.plugin_name = plugin_name


class TaskNotFoundError(TandemError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"unknown task: {task_id}")
        self.task_id = task_id


__all__ = [
    "ConfigurationError",
    "DuplicateRegistrationError",
    "InvalidUUIDError",
    "ModelNotFoundError",
    "PluginInitError",
    "ServiceNotFoundError",
    "SettingNotFoundError",
    "TandemError",
    "TaskNotFoundError",
]
