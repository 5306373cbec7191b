"""State composition: one immutable snapshot per turn from registered providers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from tandem.core.metrics import PROVIDER_FAILURES_TOTAL
from tandem.core.registry import NamedRegistry
from tandem.models.memory import Memory
from tandem.models.state import ProviderResult, State
from tandem.protocols.components import Provider

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)


class StateComposer:
    def __init__(self, runtime: AgentRuntime, providers: NamedRegistry[Provider]) -> None:
        self._runtime = runtime
        self._providers = providers

    def select(
        self,
        filter_list: Iterable[str] | None = None,
        include_list: Iterable[str] | None = None,
    ) -> list[Provider]:
        """Return the providers that take part in composition, in run order.

        Ordering is by ``position`` ascending, then registration order; prompt
        templates downstream rely on it being deterministic.
        """
        registered = self._providers.snapshot()
        if include_list is not None:
            wanted = list(dict.fromkeys(include_list))
            for name in wanted:
                if name not in registered:
                    logger.warning("Requested provider %s is not registered", name)
            selected = [p for name, p in registered.items() if name in wanted]
        else:
            selected = [p for p in registered.values() if not p.private]

        if filter_list is not None:
            excluded = set(filter_list)
            selected = [p for p in selected if p.name not in excluded]

        # sorted() is stable, so equal positions keep registration order.
        return sorted(selected, key=lambda p: p.position or 0)

    async def compose(
        self,
        message: Memory,
        filter_list: Iterable[str] | None = None,
        include_list: Iterable[str] | None = None,
    ) -> State:
        state = State.empty()
        for provider in self.select(filter_list, include_list):
            try:
                result = await provider.get(self._runtime, message, state)
                if result is None:
                    continue
                if not isinstance(result, ProviderResult):
                    result = ProviderResult.model_validate(result)
                state = state.merged(result)
            except Exception:
                PROVIDER_FAILURES_TOTAL.labels(provider=provider.name).inc()
                logger.exception("Provider %s failed; skipping its contribution", provider.name)
        return state


__all__ = ["StateComposer"]
