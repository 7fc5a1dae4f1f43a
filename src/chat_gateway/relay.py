"""Chunked read-relay loop between a backend response and the caller.

The relay reads at most ``READ_SIZE`` bytes at a time from a chunk source and
yields each validated chunk as soon as it is decoded. Nothing is buffered
beyond a split multi-byte character.

Read outcomes:

* bytes: decode, validate, yield
* ``b""``: upstream is idle; pause and read again (no retry is spent)
* ``None``: abnormal read; spend one retry, pause and read again
* ``source.closed``: upstream finished; stop
"""

from __future__ import annotations

import asyncio
import codecs
import enum
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol, TypeVar

import httpx

from chat_gateway.backends.base import BaseBackend
from chat_gateway.deadline import Deadline
from chat_gateway.errors import RetriesExhaustedError

READ_SIZE = 8192
MAX_RETRIES = 5
IDLE_DELAY_S = 0.5
RETRY_DELAY_S = 1.0

# transport failures that count as an abnormal read rather than a hard error
_ABNORMAL_READ_ERRORS = (httpx.ReadError, httpx.RemoteProtocolError)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
T = TypeVar("T")


class ChunkSource(Protocol):
    """Non-blocking read primitive over an upstream body."""

    @property
    def closed(self) -> bool: ...

    async def read(self, max_bytes: int) -> bytes | None: ...


class RelayState(enum.Enum):
    READING = "reading"
    RETRY_BACKOFF = "retry_backoff"
    DONE = "done"
    FAILED = "failed"


class ResponseChunkSource:
    """Adapts a streaming ``httpx.Response`` to ``ChunkSource``.

    A network chunk larger than ``max_bytes`` is handed out over several
    reads; separate network chunks are never merged. Once the transport
    fails the stream cannot resume, so every later read is abnormal too.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._iter = response.aiter_bytes()
        self._pending = b""
        self._closed = False
        self._failed = False

    @property
    def closed(self) -> bool:
        return self._closed and not self._pending

    async def read(self, max_bytes: int) -> bytes | None:
        if self._pending:
            return self._take(max_bytes)
        if self._failed:
            return None
        if self._closed:
            return b""
        try:
            self._pending = await self._iter.__anext__()
        except StopAsyncIteration:
            self._closed = True
            return b""
        except _ABNORMAL_READ_ERRORS as exc:
            logger.warning("Upstream read failed: %r", exc)
            self._failed = True
            return None
        return self._take(max_bytes)

    def _take(self, max_bytes: int) -> bytes:
        chunk, self._pending = self._pending[:max_bytes], self._pending[max_bytes:]
        return chunk


class StreamRelay:
    """Relays one upstream body to one caller. Single pass."""

    def __init__(
        self,
        backend: BaseBackend,
        *,
        sleep: Sleep = asyncio.sleep,
        read_size: int = READ_SIZE,
        max_retries: int = MAX_RETRIES,
        deadline: Deadline | None = None,
    ) -> None:
        self._backend = backend
        self._sleep = sleep
        self._read_size = read_size
        self._max_retries = max_retries
        self._deadline = deadline
        self.state = RelayState.READING
        self.retries = 0

    async def relay(self, source: ChunkSource) -> AsyncIterator[str]:
        """Yield validated text chunks in arrival order."""
        name = self._backend.name
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while not source.closed:
                data = await self._wait(source.read(self._read_size))

                if data is None:
                    self.state = RelayState.RETRY_BACKOFF
                    await self._backoff()
                    self.state = RelayState.READING
                    continue

                if not data:
                    if source.closed:
                        break
                    await self._wait(self._sleep(IDLE_DELAY_S))
                    continue

                text = decoder.decode(data)
                if not text:
                    # only part of a multi-byte character so far
                    continue
                chunk = self._checked(text)
                if chunk is not None:
                    yield chunk

            tail = decoder.decode(b"", final=True)
            if tail:
                chunk = self._checked(tail)
                if chunk is not None:
                    yield chunk
            self.state = RelayState.DONE
        except Exception as exc:
            self.state = RelayState.FAILED
            logger.error("Error while reading %s response: %s", name, exc)
            raise

    def _checked(self, text: str) -> str | None:
        if not text.strip():
            logger.warning("Received blank chunk from %s", self._backend.name)
            return None
        self._backend.validate_chunk(text)
        logger.info("Received %s chunk: %s", self._backend.name, text)
        return text

    async def _wait(self, aw: Awaitable[T]) -> T:
        if self._deadline is None:
            return await aw
        return await self._deadline.run(aw)

    async def _backoff(self) -> None:
        if self.retries >= self._max_retries:
            logger.error("Max retries reached for %s response, giving up", self._backend.name)
            raise RetriesExhaustedError(self._backend.name, self._max_retries)
        self.retries += 1
        logger.warning("Reading %s response failed, retry %d", self._backend.name, self.retries)
        await self._wait(self._sleep(RETRY_DELAY_S))
