"""End-to-end time limit for one upstream exchange."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from chat_gateway.errors import UpstreamTimeoutError

T = TypeVar("T")


class Deadline:
    """Absolute end time shared by every wait of one exchange.

    httpx timeouts bound each read on its own; this bounds their sum, so an
    upstream trickling bytes still gets cut off. Create it inside the
    running loop.
    """

    def __init__(self, backend: str, seconds: float) -> None:
        self.backend = backend
        self.seconds = seconds
        self._loop = asyncio.get_running_loop()
        self._end = self._loop.time() + seconds

    def remaining(self) -> float:
        return self._end - self._loop.time()

    async def run(self, aw: Awaitable[T]) -> T:
        """Await ``aw``, failing with ``UpstreamTimeoutError`` once the deadline passes."""
        remaining = self.remaining()
        if remaining <= 0:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise UpstreamTimeoutError(self.backend, self.seconds)
        try:
            return await asyncio.wait_for(aw, remaining)
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(self.backend, self.seconds) from exc
