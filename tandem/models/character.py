from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class StyleGuide(BaseModel):
    all: list[str] = Field(default_factory=list)
    chat: list[str] = Field(default_factory=list)
    post: list[str] = Field(default_factory=list)


class Character(BaseModel):
    """Static persona and configuration of the agent a runtime hosts."""

    id: str | None = None
    name: str
    username: str | None = None
    system: str | None = None
    bio: str | list[str] = ""
    topics: list[str] = Field(default_factory=list)
    adjectives: list[str] = Field(default_factory=list)
    post_examples: list[str] = Field(default_factory=list)
    plugins: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    secrets: dict[str, Any] = Field(default_factory=dict)
    style: StyleGuide = Field(default_factory=StyleGuide)
    templates: dict[str, str] = Field(default_factory=dict)
    extensions: dict[str, Any] = Field(default_factory=dict)

    def bio_text(self) -> str:
        if isinstance(self.bio, str):
            return self.bio
        return " ".join(self.bio)


__all__ = ["Character", "StyleGuide"]
