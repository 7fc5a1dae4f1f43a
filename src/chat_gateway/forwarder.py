"""Outbound call to the selected backend."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import httpx

from chat_gateway.backends.base import BackendDescriptor
from chat_gateway.config import Settings
from chat_gateway.deadline import Deadline
from chat_gateway.errors import UpstreamHTTPError

# framing headers that belong to the inbound connection only
DROPPED_HEADERS = frozenset({"content-length", "host", "connection"})

logger = logging.getLogger(__name__)


def filter_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Copy inbound headers minus framing ones, keeping repeated values."""
    forwarded: list[tuple[str, str]] = []
    for name, value in headers:
        if name.lower() in DROPPED_HEADERS:
            continue
        forwarded.append((name, value))
    return forwarded


def build_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client: no proxy, long timeout, bounded pool and connect retries."""
    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
        keepalive_expiry=settings.keepalive_expiry,
    )
    transport = httpx.AsyncHTTPTransport(retries=settings.connect_retries, limits=limits)
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(settings.upstream_timeout, connect=settings.connect_timeout),
        trust_env=False,
    )


class Forwarder:
    """Issues one streaming POST per inbound request."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "Forwarder":
        return cls(build_client(settings))

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @asynccontextmanager
    async def open(
        self,
        descriptor: BackendDescriptor,
        inbound_headers: Iterable[tuple[str, str]],
        *,
        backend: str = "upstream",
        deadline: Deadline | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Yield the live response once headers arrive; the body is left unread."""
        headers = httpx.Headers(filter_headers(inbound_headers))
        headers["Content-Type"] = "application/json"
        content = json.dumps(descriptor.body, ensure_ascii=False).encode("utf-8")

        request = self._client.build_request("POST", descriptor.url, headers=headers, content=content)
        send = self._client.send(request, stream=True)
        response = await (deadline.run(send) if deadline else send)
        try:
            if not response.is_success:
                raw = await (deadline.run(response.aread()) if deadline else response.aread())
                body = raw.decode("utf-8", errors="replace")
                logger.error("%s returned error: %s - %s", backend, response.status_code, body)
                raise UpstreamHTTPError(backend, response.status_code, body, response.reason_phrase)
            yield response
        finally:
            await response.aclose()
