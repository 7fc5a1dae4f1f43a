"""Backend-agnostic base interfaces and helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from chat_gateway.config import BackendId
from chat_gateway.content import normalize_content
from chat_gateway.errors import UpstreamReportedError
from chat_gateway.types import ChatRequest, Message

DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class BackendDescriptor:
    """Fully resolved outbound request for one backend call."""

    host: str
    endpoint: str
    body: dict[str, Any] = field(default_factory=dict)
    scheme: str | None = None

    @property
    def url(self) -> str:
        # hosts without a scheme (OLLAMA) get one prepended
        if self.scheme:
            return f"{self.scheme}://{self.host}{self.endpoint}"
        return f"{self.host}{self.endpoint}"


class BaseBackend(ABC):
    """Abstract base class for backend implementations."""

    id: BackendId

    @property
    def name(self) -> str:
        return self.id.value

    @abstractmethod
    def build_descriptor(self, req: ChatRequest) -> BackendDescriptor:
        """Translate a unified request into this backend's request."""
        raise NotImplementedError

    def validate_chunk(self, text: str) -> None:
        """Check a decoded response chunk before it is relayed.

        Raises ``UpstreamReportedError`` when the chunk looks like an error
        report. Backends may add advisory checks that only log.
        """
        if "error" in text:
            raise UpstreamReportedError(self.name, text)

    def _base_body(self, req: ChatRequest, model: str) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [serialize_message(m) for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else DEFAULT_TEMPERATURE,
            "stream": req.stream if req.stream is not None else False,
        }


def serialize_message(message: Message) -> dict[str, Any]:
    return {"role": message.role, "content": normalize_content(message.parsed_content())}
