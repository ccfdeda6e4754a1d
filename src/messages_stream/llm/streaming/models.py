"""
Streaming-specific models: wire events, relay messages and accumulator state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from ..models import ContentBlock, Container, Usage

if TYPE_CHECKING:
    from ..exceptions import LLMError


class EventKind(Enum):
    """Server-Sent Event kinds of the Messages streaming protocol."""
    MESSAGE_START = "message_start"
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> EventKind:
        """Map an SSE event name to its kind; anything unrecognized is UNKNOWN."""
        try:
            kind = cls(name)
        except ValueError:
            return cls.UNKNOWN
        return kind


class StreamEventType(Enum):
    """Callback registration kinds."""
    EVENT = "event"
    TEXT = "text"
    COMPLETE = "complete"
    ERROR = "error"


# Deltas

class _Delta(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")


class TextDelta(_Delta):
    type: Literal["text_delta"] = "text_delta"
    text: str


class ThinkingDelta(_Delta):
    type: Literal["thinking_delta"] = "thinking_delta"
    thinking: str


class SignatureDelta(_Delta):
    type: Literal["signature_delta"] = "signature_delta"
    signature: str


class InputJSONDelta(_Delta):
    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str


class CitationsDelta(_Delta):
    type: Literal["citations_delta"] = "citations_delta"
    citation: dict[str, Any]


class UnknownDelta(_Delta):
    type: str


_DELTA_TYPES = frozenset({
    "text_delta", "thinking_delta", "signature_delta",
    "input_json_delta", "citations_delta",
})


def _delta_tag(value: Any) -> str:
    delta_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return delta_type if delta_type in _DELTA_TYPES else "unknown"


Delta = Annotated[
    Annotated[TextDelta, Tag("text_delta")]
    | Annotated[ThinkingDelta, Tag("thinking_delta")]
    | Annotated[SignatureDelta, Tag("signature_delta")]
    | Annotated[InputJSONDelta, Tag("input_json_delta")]
    | Annotated[CitationsDelta, Tag("citations_delta")]
    | Annotated[UnknownDelta, Tag("unknown")],
    Discriminator(_delta_tag),
]


# Wire events

class WireEvent(BaseModel):
    """One decoded SSE frame. Immutable once created."""
    model_config = ConfigDict(frozen=True, extra="allow")

    kind: ClassVar[EventKind] = EventKind.UNKNOWN
    type: str


class StreamMessage(BaseModel):
    """Message skeleton carried by ``message_start``."""
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"
    model: str
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage
    container: Container | None = None


class MessageStartEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.MESSAGE_START
    type: Literal["message_start"] = "message_start"
    message: StreamMessage


class ContentBlockStartEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.CONTENT_BLOCK_START
    type: Literal["content_block_start"] = "content_block_start"
    index: int
    content_block: ContentBlock


class ContentBlockDeltaEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.CONTENT_BLOCK_DELTA
    type: Literal["content_block_delta"] = "content_block_delta"
    index: int
    delta: Delta


class ContentBlockStopEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.CONTENT_BLOCK_STOP
    type: Literal["content_block_stop"] = "content_block_stop"
    index: int


class MessageDelta(BaseModel):
    """Top-level message fields updated by ``message_delta``."""
    model_config = ConfigDict(frozen=True, extra="allow")

    stop_reason: str | None = None
    stop_sequence: str | None = None
    container: Container | None = None


class MessageDeltaUsage(BaseModel):
    """Cumulative usage reported by ``message_delta``; all fields optional."""
    model_config = ConfigDict(frozen=True, extra="allow")

    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    server_tool_use: dict[str, Any] | None = None


class MessageDeltaEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.MESSAGE_DELTA
    type: Literal["message_delta"] = "message_delta"
    delta: MessageDelta = Field(default_factory=MessageDelta)
    usage: MessageDeltaUsage | None = None


class MessageStopEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.MESSAGE_STOP
    type: Literal["message_stop"] = "message_stop"


class ErrorDetail(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str | None = None
    message: str = "Stream error"


class ErrorEvent(WireEvent):
    kind: ClassVar[EventKind] = EventKind.ERROR
    type: Literal["error"] = "error"
    error: ErrorDetail = Field(default_factory=ErrorDetail)


class UnknownEvent(WireEvent):
    """Forward-compatible catch-all (``ping`` and future event names)."""
    kind: ClassVar[EventKind] = EventKind.UNKNOWN
    data: dict[str, Any] = Field(default_factory=dict)


EVENT_MODELS: dict[EventKind, type[WireEvent]] = {
    EventKind.MESSAGE_START: MessageStartEvent,
    EventKind.CONTENT_BLOCK_START: ContentBlockStartEvent,
    EventKind.CONTENT_BLOCK_DELTA: ContentBlockDeltaEvent,
    EventKind.CONTENT_BLOCK_STOP: ContentBlockStopEvent,
    EventKind.MESSAGE_DELTA: MessageDeltaEvent,
    EventKind.MESSAGE_STOP: MessageStopEvent,
    EventKind.ERROR: ErrorEvent,
}


# Relay messages

@dataclass(frozen=True)
class StreamCompleted:
    """Producer reached the end of a successful response body."""
    status_code: int


@dataclass(frozen=True)
class StreamFailed:
    """Producer hit a terminal error."""
    error: LLMError


RelayMessage = WireEvent | StreamCompleted | StreamFailed


# Assembler state

@dataclass
class BlockState:
    """One content block under construction."""
    fields: dict[str, Any]
    partial_json: str | None = None
    stopped: bool = False

    @property
    def type(self) -> str:
        return self.fields["type"]


@dataclass
class AccumulatorState:
    """Mutable response under construction, owned by a single assembler run."""
    id: str | None = None
    type: str = "message"
    role: str = "assistant"
    model: str | None = None
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)
    container: dict[str, Any] | None = None
    content: list[BlockState] = field(default_factory=list)
    started: bool = False
    finished: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Response-shaped view of the current state."""
        return {
            "id": self.id,
            "type": self.type,
            "role": self.role,
            "model": self.model,
            "content": [dict(block.fields) for block in self.content],
            "stop_reason": self.stop_reason,
            "stop_sequence": self.stop_sequence,
            "usage": dict(self.usage),
            "container": self.container,
        }


@dataclass(frozen=True)
class StreamingStats:
    """Statistics for streaming performance analysis."""
    total_events: int
    events_by_kind: dict[str, int]
    total_chunks: int
    total_bytes: int
    first_event_latency: float
    total_duration: float
