from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Media(BaseModel):
    id: str
    url: str
    title: str = ""
    source: str = ""
    description: str = ""
    text: str = ""
    content_type: str | None = None


class Content(BaseModel):
    """Payload of a message, reply or stored memory.

    Known fields are enumerated; anything else a platform needs to carry
    goes into ``extensions``.
    """

    thought: str | None = None
    plan: str | None = None
    text: str | None = None
    actions: list[str] = Field(default_factory=list)
    providers: list[str] = Field(default_factory=list)
    source: str | None = None
    url: str | None = None
    in_reply_to: str | None = None
    attachments: list[Media] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)

    def with_updates(self, **changes: Any) -> Content:
        """Return a copy with *changes* applied; unknown keys land in ``extensions``."""
        known = {k: v for k, v in changes.items() if k in type(self).model_fields}
        extra = {k: v for k, v in changes.items() if k not in type(self).model_fields}
        updated = self.model_copy(update=known, deep=True)
        if extra:
            updated.extensions.update(extra)
        return updated


__all__ = ["Content", "Media"]
