"""Flatten message content to the plain text every backend accepts."""

from __future__ import annotations

import json
from typing import Any

from chat_gateway.types import MessageContent, Opaque, PlainText, Segments


def normalize_content(content: MessageContent) -> str:
    """Return the plain-text form of a message's content.

    Never raises for a ``MessageContent`` value; any other argument is a
    programming error and gets a ``TypeError``.
    """
    if isinstance(content, PlainText):
        return content.text
    if isinstance(content, Segments):
        return "\n".join(_segment_texts(content.items))
    if isinstance(content, Opaque):
        return _render(content.value)
    raise TypeError(f"Unknown content variant: {type(content).__name__}")


def _segment_texts(items: tuple[Any, ...]) -> list[str]:
    texts: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if text is None:
            continue
        texts.append(text if isinstance(text, str) else _render(text))
    return texts


def _render(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
