"""Request pipeline: parse, resolve, forward, relay."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Iterable
from contextlib import aclosing

from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError

from chat_gateway.backends import BaseBackend, get_backend
from chat_gateway.backends.base import BackendDescriptor
from chat_gateway.config import BackendId, Settings
from chat_gateway.deadline import Deadline
from chat_gateway.errors import InvalidRequestError, error_envelope
from chat_gateway.forwarder import Forwarder
from chat_gateway.relay import ResponseChunkSource, Sleep, StreamRelay
from chat_gateway.types import ChatRequest

logger = logging.getLogger(__name__)


def parse_request(raw_body: bytes | str) -> ChatRequest:
    """Deserialize the inbound body; structure only, no semantic checks."""
    try:
        return ChatRequest.model_validate_json(raw_body)
    except ValidationError as exc:
        raise InvalidRequestError(f"Invalid chat request: {exc}") from exc


def _pretty(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


class ChatGateway:
    """Handles chat requests against one configured backend.

    The backend comes from ``settings`` unless overridden at construction or
    per call.
    """

    def __init__(
        self,
        settings: Settings,
        forwarder: Forwarder,
        *,
        backend_id: BackendId | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._forwarder = forwarder
        self.backend_id = backend_id or settings.llm_backend
        self._sleep = sleep

    async def handle(
        self,
        raw_body: bytes | str,
        headers: Iterable[tuple[str, str]],
        *,
        backend_id: BackendId | None = None,
    ) -> Response:
        """Return a streaming response, or a 500 error envelope if nothing was relayed yet."""
        backend = get_backend(backend_id or self.backend_id, self._settings)
        headers = list(headers)
        try:
            req = parse_request(raw_body)
            logger.info(
                "Received %s chat request:\n--- headers ---\n%s\n--- body ---\n%s",
                backend.name,
                "\n".join(f"{name}: {value}" for name, value in headers),
                _pretty(req.model_dump()),
            )

            descriptor = backend.build_descriptor(req)
            logger.info("Request body for %s:\n%s", backend.name, _pretty(descriptor.body))

            chunks = self._pipeline(backend, descriptor, headers)
            try:
                first: str | None = await chunks.__anext__()
            except StopAsyncIteration:
                first = None
        except Exception as exc:
            logger.error("Error handling %s chat request: %s", backend.name, exc, exc_info=True)
            return JSONResponse(status_code=500, content=error_envelope(exc))

        return StreamingResponse(
            self._drain(backend, first, chunks),
            media_type="application/json",
            headers={"Cache-Control": "no-cache"},
        )

    async def _pipeline(
        self,
        backend: BaseBackend,
        descriptor: BackendDescriptor,
        headers: list[tuple[str, str]],
    ) -> AsyncGenerator[str, None]:
        # one time limit for connect, headers and the whole body
        deadline = Deadline(backend.name, self._settings.upstream_timeout)
        async with self._forwarder.open(descriptor, headers, backend=backend.name, deadline=deadline) as response:
            relay = StreamRelay(backend, sleep=self._sleep, deadline=deadline)
            async with aclosing(relay.relay(ResponseChunkSource(response))) as chunks:
                async for chunk in chunks:
                    yield chunk

    async def _drain(
        self,
        backend: BaseBackend,
        first: str | None,
        chunks: AsyncGenerator[str, None],
    ) -> AsyncGenerator[str, None]:
        # headers are already sent; a failure can only cut the stream short
        try:
            if first is not None:
                yield first
            async for chunk in chunks:
                yield chunk
        except Exception as exc:
            logger.error("%s stream ended early: %s", backend.name, exc, exc_info=True)
        finally:
            await chunks.aclose()
