"""
Streaming functionality for the Messages API.

This package contains:
- SSE frame decoding
- Producer/relay plumbing with inactivity timeouts
- Incremental response assembly
- Consumption views (run, stream, text_stream, callbacks)
"""

from __future__ import annotations

from .assembler import MessageAssembler, assemble
from .models import (
    AccumulatorState,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    ErrorEvent,
    EventKind,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    StreamEventType,
    StreamingStats,
    UnknownEvent,
    WireEvent,
)
from .parser import FrameDecoder, decode_frames
from .relay import StreamRelay, StreamSession
from .response import StreamingResponse

__all__ = [
    "AccumulatorState",
    "ContentBlockDeltaEvent",
    "ContentBlockStartEvent",
    "ContentBlockStopEvent",
    "ErrorEvent",
    "EventKind",
    "FrameDecoder",
    "MessageAssembler",
    "MessageDeltaEvent",
    "MessageStartEvent",
    "MessageStopEvent",
    "StreamEventType",
    "StreamRelay",
    "StreamSession",
    "StreamingResponse",
    "StreamingStats",
    "UnknownEvent",
    "WireEvent",
    "assemble",
    "decode_frames",
]
