"""Backend-agnostic request models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class PlainText:
    """Content given as a single string."""

    text: str


@dataclass(frozen=True)
class Segments:
    """Content given as an ordered list of segments, e.g. ``{"type": "text", "text": ...}``."""

    items: tuple[Any, ...]


@dataclass(frozen=True)
class Opaque:
    """Any other JSON value."""

    value: Any


MessageContent = Union[PlainText, Segments, Opaque]


def classify_content(raw: Any) -> MessageContent:
    """Tag a raw JSON content value with its variant."""
    if isinstance(raw, str):
        return PlainText(raw)
    if isinstance(raw, list):
        return Segments(tuple(raw))
    return Opaque(raw)


class Message(BaseModel):
    """Single chat message; ``content`` keeps the caller's raw JSON."""

    role: str
    content: Any = None

    def parsed_content(self) -> MessageContent:
        return classify_content(self.content)


class ChatRequest(BaseModel):
    """Unified request accepted by the gateway."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    model: str | None = None
    messages: list[Message] = Field(default_factory=list)
    temperature: float | None = None
    # informational only, the relay always streams
    stream: bool | None = False
