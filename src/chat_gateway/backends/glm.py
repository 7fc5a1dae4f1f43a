"""Zhipu GLM backend."""

from __future__ import annotations

from chat_gateway.backends.base import BackendDescriptor, BaseBackend
from chat_gateway.config import BackendId
from chat_gateway.types import ChatRequest

_HOST = "https://open.bigmodel.cn"
_CHAT_PATH = "/api/paas/v4/chat/completions"
_MODEL = "glm-4-long"


class GlmBackend(BaseBackend):
    """GLM chat completions. The model is pinned; the caller's is not valid here."""

    id = BackendId.GLM

    def build_descriptor(self, req: ChatRequest) -> BackendDescriptor:
        return BackendDescriptor(host=_HOST, endpoint=_CHAT_PATH, body=self._base_body(req, _MODEL))
