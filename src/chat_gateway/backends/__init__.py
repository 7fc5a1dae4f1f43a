"""Backend definitions for chat_gateway."""

from __future__ import annotations

from chat_gateway.backends.base import BackendDescriptor, BaseBackend
from chat_gateway.backends.glm import GlmBackend
from chat_gateway.backends.kimi import KimiBackend
from chat_gateway.backends.ollama import OllamaBackend
from chat_gateway.config import BackendId, Settings
from chat_gateway.types import ChatRequest


def get_backend(backend_id: BackendId, settings: Settings | None = None) -> BaseBackend:
    """Return the backend implementation for an identifier."""
    if backend_id is BackendId.OLLAMA:
        return OllamaBackend(host=settings.ollama_host if settings else None)
    if backend_id is BackendId.GLM:
        return GlmBackend()
    if backend_id is BackendId.KIMI:
        return KimiBackend()
    raise ValueError(f"Unknown backend: {backend_id!r}")


def resolve(req: ChatRequest, backend_id: BackendId, settings: Settings | None = None) -> BackendDescriptor:
    """Map a unified request to the descriptor for ``backend_id``."""
    return get_backend(backend_id, settings).build_descriptor(req)


__all__ = [
    "BackendDescriptor",
    "BaseBackend",
    "GlmBackend",
    "KimiBackend",
    "OllamaBackend",
    "get_backend",
    "resolve",
]
