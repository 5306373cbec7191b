"""Prompt template rendering from a composed state."""

from __future__ import annotations

import re

from tandem.models.state import State

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def compose_prompt(state: State, template: str) -> str:
    """Fill ``{{key}}`` placeholders from ``state.values``.

    Unknown keys render as an empty string so a template never leaks raw
    placeholders into a model prompt.
    """

    def _replace(match: re.Match[str]) -> str:
        value = state.values.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


__all__ = ["compose_prompt"]
