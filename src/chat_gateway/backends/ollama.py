"""Ollama backend (local ``/api/chat``)."""

from __future__ import annotations

import json
import logging

from chat_gateway.backends.base import BackendDescriptor, BaseBackend
from chat_gateway.config import BackendId
from chat_gateway.errors import MalformedChunkError
from chat_gateway.types import ChatRequest

_DEFAULT_HOST = "127.0.0.1:11434"
_CHAT_PATH = "/api/chat"
_DEFAULT_MODEL = "deepseek-r1:1.5b"
_MAX_TOKENS = 4096
_CONTEXT_LENGTH = 4096


class OllamaBackend(BaseBackend):
    """Ollama chat API; the only backend that honours the caller's model."""

    id = BackendId.OLLAMA
    _logger = logging.getLogger(__name__)

    def __init__(self, *, host: str | None = None) -> None:
        self._host = host or _DEFAULT_HOST

    def build_descriptor(self, req: ChatRequest) -> BackendDescriptor:
        model = req.model if req.model and req.model.strip() else _DEFAULT_MODEL
        body = self._base_body(req, model)
        body["max_tokens"] = _MAX_TOKENS
        body["context_length"] = _CONTEXT_LENGTH
        return BackendDescriptor(host=self._host, endpoint=_CHAT_PATH, body=body, scheme="http")

    def validate_chunk(self, text: str) -> None:
        super().validate_chunk(text)
        try:
            self._check_shape(text)
        except MalformedChunkError as exc:
            # advisory only; the chunk is still relayed
            self._logger.error("%s, chunk: %s", exc, text)

    def _check_shape(self, text: str) -> None:
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedChunkError(self.name, f"unparseable chunk ({exc})", text) from exc
        if not isinstance(obj, dict) or "message" not in obj:
            raise MalformedChunkError(self.name, "chunk has no 'message' field", text)
