"""
Error taxonomy for Messages API calls and streaming sessions.

Every failure surfaced by the client or a streaming session is an LLMError:
- TransportError: connection failure before or during the stream
- HTTPError: non-2xx status, with the API error body parsed when present
- StreamError: an error event embedded mid-stream, or an incomplete stream
- StreamTimeoutError: producer or relay inactivity threshold exceeded
- DecodeError: malformed frame payload or a response failing validation

Nothing in this package retries; retry policy belongs to the caller.
"""

from __future__ import annotations

import json
from typing import Any


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.response_data = response_data or {}


class TransportError(LLMError):
    """Connection failure while issuing or reading the request."""
    pass


class HTTPError(LLMError):
    """Non-2xx response from the API."""

    @classmethod
    def from_response(cls, status_code: int, body: bytes | str) -> HTTPError:
        """Build an HTTPError from a status code and raw response body.

        A body shaped like ``{"error": {"type": ..., "message": ...}}`` fills
        ``error_type`` and ``message``. Empty bodies get a generic message and
        anything else is reported verbatim.
        """
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body

        if not text.strip():
            return cls("Empty response received", status_code=status_code)

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return cls(text, status_code=status_code)

        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            return cls(
                str(error.get("message", "")),
                status_code=status_code,
                error_type=error.get("type"),
                response_data=data,
            )

        return cls(text, status_code=status_code, response_data=data if isinstance(data, dict) else None)


class StreamError(LLMError):
    """Streaming-specific errors."""

    @classmethod
    def from_event(cls, payload: dict[str, Any]) -> StreamError:
        """Build a StreamError from the ``error`` object of an error event."""
        return cls(
            str(payload.get("message", "Stream error")),
            error_type=payload.get("type"),
            response_data={"error": payload},
        )


class ProtocolError(StreamError):
    """Events arrived in an order the streaming protocol does not allow."""
    pass


class StreamTimeoutError(LLMError, TimeoutError):
    """No message arrived within an inactivity window."""

    def __init__(self, message: str, source: str, timeout: float, **kwargs):
        super().__init__(message, **kwargs)
        self.source = source
        self.timeout = timeout


class DecodeError(LLMError):
    """Malformed JSON or a payload that fails schema validation."""
    pass


class StreamCancelledError(LLMError):
    """The session was cancelled while a consumer was waiting."""

    def __init__(self, message: str = "Stream was cancelled", **kwargs):
        super().__init__(message, **kwargs)


class StreamConsumedError(RuntimeError):
    """A streaming response was consumed more than once."""
    pass
