"""Per-turn context snapshot and provider contributions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field


class ProviderResult(BaseModel):
    """What a single provider contributes to a turn's state."""

    values: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)
    text: str = ""


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class State:
    """Immutable context snapshot built once per turn.

    ``values`` and ``data`` are read-only views over private top-level copies.
    Keys cannot be added, replaced or removed by the caller that built the
    snapshot or by the handlers that read it. Contributed objects are shared
    as-is, so providers may hand out live clients and locks.
    """

    values: Mapping[str, Any] = field(default_factory=dict)
    data: Mapping[str, Any] = field(default_factory=dict)
    text: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _freeze(self.values))
        object.__setattr__(self, "data", _freeze(self.data))

    @classmethod
    def empty(cls) -> State:
        return cls()

    def merged(self, result: ProviderResult) -> State:
        """Return a new snapshot with *result* layered on top of this one."""
        values = {**self.values, **result.values}
        data = {**self.data, **result.data}
        text = self.text
        if result.text:
            text = f"{text}\n\n{result.text}" if text else result.text
        return State(values=values, data=data, text=text)


__all__ = ["ProviderResult", "State"]
