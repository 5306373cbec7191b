"""Capability registries: typed key -> handler/implementation.

Registration normally happens once at startup, but live re-registration is
supported: writers serialize on a lock and publish a fresh mapping, so
readers always see a complete snapshot and never block.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Generic, TypeVar

from tandem.core.errors import DuplicateRegistrationError

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class CapabilityRegistry(Generic[K, V]):
    """Insertion-ordered registry with last-registered-wins semantics."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._write_lock = threading.Lock()
        self._entries: Mapping[K, V] = MappingProxyType({})

    def register(self, key: K, value: V, *, override: bool = True) -> None:
        with self._write_lock:
            current = dict(self._entries)
            if key in current:
                if not override:
                    raise DuplicateRegistrationError(self.kind, str(key))
                logger.debug("Replacing %s registration for %s", self.kind, key)
            current[key] = value
            self._entries = MappingProxyType(current)

    def unregister(self, key: K) -> V | None:
        with self._write_lock:
            current = dict(self._entries)
            removed = current.pop(key, None)
            self._entries = MappingProxyType(current)
        return removed

    def get(self, key: K) -> V | None:
        return self._entries.get(key)

    def snapshot(self) -> Mapping[K, V]:
        return self._entries

    def values(self) -> list[V]:
        return list(self._entries.values())

    def clear(self) -> None:
        with self._write_lock:
            self._entries = MappingProxyType({})

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[K]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class NamedRegistry(CapabilityRegistry[str, V]):
    """Registry for named components (actions, providers, evaluators, workers).

    Re-registering a name replaces the entry but keeps its original
    registration position, which is what ordering-sensitive dispatch uses.
    """

    def add(self, component: V, *, override: bool = True) -> None:
        self.register(component.name, component, override=override)  # type: ignore[attr-defined]


__all__ = ["CapabilityRegistry", "NamedRegistry"]
