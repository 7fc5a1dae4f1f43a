"""
FastAPI application factory for the chat gateway.

Routes:
- GET /                          greeting with the current time
- POST /api/v1/chat/completions  unified chat completion, relayed from the configured backend
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from chat_gateway.config import Settings, get_settings
from chat_gateway.forwarder import Forwarder
from chat_gateway.gateway import ChatGateway

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    forwarder: Forwarder | None = None,
    gateway: ChatGateway | None = None,
) -> FastAPI:
    """
    Create the gateway application.

    Args:
        settings: Service settings; read from the environment when omitted.
        forwarder: Outbound forwarder; built from settings when omitted.
        gateway: Prebuilt request handler, mainly for tests.

    Returns:
        Configured FastAPI application. The forwarder's client is closed on
        shutdown.
    """
    settings = settings or get_settings()
    forwarder = forwarder or Forwarder.from_settings(settings)
    gateway = gateway or ChatGateway(settings, forwarder)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Chat gateway starting up, backend: %s", gateway.backend_id.value)
        yield
        logger.info("Chat gateway shutting down")
        await forwarder.aclose()

    app = FastAPI(title="Chat Gateway", version="0.1.0", lifespan=lifespan)

    @app.get("/", response_class=PlainTextResponse)
    async def index(request: Request) -> str:
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        logger.info(
            "Received request: time=%s client=%s user_agent=%s path=%s method=%s",
            now,
            request.client.host if request.client else "unknown",
            request.headers.get("user-agent", "Unknown"),
            request.url.path,
            request.method,
        )
        return f"Hello World! Current time: {now}"

    @app.post("/api/v1/chat/completions")
    async def chat_completions(request: Request) -> Response:
        body = await request.body()
        return await gateway.handle(body, request.headers.items())

    return app
