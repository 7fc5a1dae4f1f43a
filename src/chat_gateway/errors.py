"""Gateway exception hierarchy and the JSON error envelope."""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base exception for chat_gateway package."""


class InvalidRequestError(GatewayError):
    """Raised when the inbound body is not a chat request."""


class UpstreamHTTPError(GatewayError):
    """Backend answered with a non-success status."""

    def __init__(self, backend: str, status_code: int, body: str, reason: str = "") -> None:
        status = f"{status_code} {reason}".strip()
        super().__init__(f"{backend} API error: {status} - {body}")
        self.backend = backend
        self.status_code = status_code
        self.body = body


class RetriesExhaustedError(GatewayError):
    """Raised when abnormal reads exceed the retry budget."""

    def __init__(self, backend: str, attempts: int) -> None:
        super().__init__(f"{backend}: max retries exceeded, read failed after {attempts} retries")
        self.backend = backend
        self.attempts = attempts


class UpstreamTimeoutError(GatewayError):
    """The whole upstream exchange outlived its time limit."""

    def __init__(self, backend: str, seconds: float) -> None:
        super().__init__(f"{backend}: request timed out after {seconds:g}s")
        self.backend = backend
        self.seconds = seconds


class UpstreamReportedError(GatewayError):
    """Backend reported an error inside the response stream."""

    def __init__(self, backend: str, chunk: str) -> None:
        super().__init__(f"{backend} returned error: {chunk}")
        self.backend = backend
        self.chunk = chunk


class MalformedChunkError(GatewayError):
    """A chunk failed backend-specific shape validation."""

    def __init__(self, backend: str, reason: str, chunk: str) -> None:
        super().__init__(f"{backend}: {reason}")
        self.backend = backend
        self.reason = reason
        self.chunk = chunk


def error_envelope(exc: BaseException) -> dict[str, Any]:
    """Render any failure as the single error shape callers see."""
    return {
        "error": {
            "message": str(exc) or "unknown error",
            "type": type(exc).__name__,
        }
    }
