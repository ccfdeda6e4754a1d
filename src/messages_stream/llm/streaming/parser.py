"""
SSE frame decoder for the Messages streaming protocol.

Frames look like::

    event: content_block_delta
    data: {"type": "content_block_delta", "index": 0, "delta": {...}}

and are terminated by a blank line. Decoding is incremental: bytes that do
not yet form a complete frame are handed back to the caller untouched, so
splitting a payload at any byte boundary decodes to the same events.
"""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from ..exceptions import DecodeError
from .models import EVENT_MODELS, EventKind, UnknownEvent, WireEvent

# Blank line between frames; tolerates CRLF and mixed line endings
FRAME_SEPARATOR = re.compile(rb"(?:\r?\n){2}")
LINE_SEPARATOR = re.compile(r"\r?\n")


def decode_frames(buffer: bytes, chunk: bytes) -> tuple[list[WireEvent], bytes]:
    """
    Decode every complete frame in ``buffer + chunk``.

    Args:
        buffer: Leftover bytes returned by the previous call
        chunk: Newly received bytes

    Returns:
        Tuple of (decoded events in wire order, bytes to carry into the next call)

    Raises:
        DecodeError: If a complete frame carries malformed JSON or a payload
            that does not match its event schema
    """
    data = buffer + chunk
    events: list[WireEvent] = []
    position = 0

    while match := FRAME_SEPARATOR.search(data, position):
        frame = data[position:match.start()]
        position = match.end()

        event = parse_frame(frame)
        if event is not None:
            events.append(event)

    return events, data[position:]


def parse_frame(frame: bytes) -> WireEvent | None:
    """Parse one frame without its terminating blank line.

    Returns None for frames without a ``data:`` line (comments, keep-alives).
    """
    try:
        text = frame.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Invalid UTF-8 in SSE frame: {e}") from e

    event_name: str | None = None
    data_lines: list[str] = []

    for line in LINE_SEPARATOR.split(text):
        if not line or line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            event_name = value.strip()
        elif name == "data":
            data_lines.append(value)

    if not data_lines:
        return None

    raw_data = "\n".join(data_lines)
    try:
        payload = json.loads(raw_data)
    except json.JSONDecodeError as e:
        raise DecodeError(
            f"Invalid JSON in SSE frame: {e}",
            response_data={"event": event_name, "data": raw_data},
        ) from e

    if not isinstance(payload, dict):
        raise DecodeError(
            f"Expected JSON object in SSE frame, got {type(payload).__name__}",
            response_data={"event": event_name, "data": raw_data},
        )

    return build_event(event_name or str(payload.get("type", "")), payload)


def build_event(event_name: str, payload: dict) -> WireEvent:
    """Validate a decoded payload against the schema for its event kind."""
    kind = EventKind.from_name(event_name)
    model = EVENT_MODELS.get(kind)

    if model is None:
        return UnknownEvent(type=event_name or "unknown", data=payload)

    try:
        return model.model_validate({**payload, "type": kind.value})
    except ValidationError as e:
        raise DecodeError(
            f"Invalid '{kind.value}' event payload: {e}",
            response_data={"event": event_name, "data": payload},
        ) from e


class FrameDecoder:
    """Stateful wrapper around decode_frames that carries the buffer between chunks."""

    def __init__(self) -> None:
        self.buffer = b""
        self.stats = {
            'total_chunks': 0,
            'total_bytes': 0,
            'total_events': 0,
        }

    def feed(self, chunk: bytes) -> list[WireEvent]:
        """Decode a newly received chunk, returning completed events."""
        self.stats['total_chunks'] += 1
        self.stats['total_bytes'] += len(chunk)

        events, self.buffer = decode_frames(self.buffer, chunk)
        self.stats['total_events'] += len(events)
        return events

    @property
    def has_pending(self) -> bool:
        """Whether a partial frame is waiting for more bytes."""
        return bool(self.buffer.strip())

    def get_stats(self) -> dict[str, int]:
        """Get decoding statistics for monitoring."""
        return self.stats.copy()
