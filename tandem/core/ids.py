from __future__ import annotations

import re
import uuid

from tandem.core.errors import InvalidUUIDError

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

# Fixed namespace so the same string maps to the same id across processes.
_TANDEM_NAMESPACE = uuid.UUID("8f2c7a51-3d4e-4b6a-9c1f-2e5d7b9a0c13")


def as_uuid(value: object) -> str:
    """Validate *value* as a canonical UUID string and return it unchanged."""
    if not isinstance(value, str) or not _UUID_RE.match(value):
        raise InvalidUUIDError(value)
    return value


def string_to_uuid(value: str | int) -> str:
    """Derive a stable UUID from arbitrary text (room names, platform ids)."""
    return str(uuid.uuid5(_TANDEM_NAMESPACE, str(value)))


def new_id() -> str:
    return str(uuid.uuid4())


__all__ = ["as_uuid", "new_id", "string_to_uuid"]
