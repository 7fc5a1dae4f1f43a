"""Single-endpoint chat-completion gateway for Ollama, GLM and Kimi backends."""

from chat_gateway.config import BackendId, Settings
from chat_gateway.errors import GatewayError, error_envelope
from chat_gateway.gateway import ChatGateway
from chat_gateway.types import ChatRequest, Message

__all__ = [
    "BackendId",
    "ChatGateway",
    "ChatRequest",
    "GatewayError",
    "Message",
    "Settings",
    "error_envelope",
]
