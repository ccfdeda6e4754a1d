"""
Messages API client with streaming response reconstruction.

Usage:

    client = MessagesClient.from_configuration(Configuration())
    async with client:
        streaming = client.stream_message({"model": ..., "max_tokens": ..., "messages": [...]})
        async for text in streaming.text_stream():
            print(text, end="")
"""

from __future__ import annotations

from .config import Configuration
from .llm import (
    ClientConfig,
    DecodeError,
    HTTPError,
    LLMError,
    MessagesClient,
    ProtocolError,
    Response,
    StreamCancelledError,
    StreamConsumedError,
    StreamError,
    StreamEventType,
    StreamingResponse,
    StreamTimeoutError,
    TransportError,
    WireEvent,
)

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "Configuration",
    "DecodeError",
    "HTTPError",
    "LLMError",
    "MessagesClient",
    "ProtocolError",
    "Response",
    "StreamCancelledError",
    "StreamConsumedError",
    "StreamError",
    "StreamEventType",
    "StreamTimeoutError",
    "StreamingResponse",
    "TransportError",
    "WireEvent",
    "__version__",
]
