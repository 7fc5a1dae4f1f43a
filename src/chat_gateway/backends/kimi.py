"""Moonshot Kimi backend."""

from __future__ import annotations

from chat_gateway.backends.base import BackendDescriptor, BaseBackend
from chat_gateway.config import BackendId
from chat_gateway.types import ChatRequest

_HOST = "https://api.moonshot.cn"
_CHAT_PATH = "/v1/chat/completions"
_MODEL = "moonshot-v1-8k"


class KimiBackend(BaseBackend):
    id = BackendId.KIMI

    def build_descriptor(self, req: ChatRequest) -> BackendDescriptor:
        return BackendDescriptor(host=_HOST, endpoint=_CHAT_PATH, body=self._base_body(req, _MODEL))
