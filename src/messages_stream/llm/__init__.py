"""
Messages API integration with incremental streaming support.

This package provides:
- Schema-validated response and content block models
- A direct httpx client for single-shot and streaming requests
- Streaming reconstruction with timeouts and ordered delivery
- A typed error taxonomy
"""

from __future__ import annotations

from .client import MessagesClient
from .exceptions import (
    DecodeError,
    HTTPError,
    LLMError,
    ProtocolError,
    StreamCancelledError,
    StreamConsumedError,
    StreamError,
    StreamTimeoutError,
    TransportError,
)
from .models import (
    ClientConfig,
    ContentBlock,
    Container,
    Response,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
    Usage,
)
from .streaming import StreamEventType, StreamingResponse, WireEvent

__all__ = [
    # Client
    "ClientConfig",
    "Container",
    # Core models
    "ContentBlock",
    # Exceptions
    "DecodeError",
    "HTTPError",
    "LLMError",
    "MessagesClient",
    "ProtocolError",
    "Response",
    "StreamCancelledError",
    "StreamConsumedError",
    "StreamError",
    # Streaming
    "StreamEventType",
    "StreamTimeoutError",
    "StreamingResponse",
    "TextBlock",
    "ThinkingBlock",
    "ToolUseBlock",
    "TransportError",
    "Usage",
    "WireEvent",
]
