"""
Incremental response assembly from streamed wire events.

MessageAssembler folds one event at a time into an AccumulatorState and turns
the finished state into a validated Response. It performs no I/O and owns no
timers; timeouts live in the relay.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

from pydantic import ValidationError

from ..exceptions import DecodeError, ProtocolError, StreamError
from ..models import TOOL_USE_BLOCK_TYPES, Response
from .models import (
    AccumulatorState,
    BlockState,
    CitationsDelta,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    InputJSONDelta,
    MessageDeltaEvent,
    MessageStartEvent,
    MessageStopEvent,
    SignatureDelta,
    TextDelta,
    ThinkingDelta,
    WireEvent,
)


class MessageAssembler:
    """
    Reducer from wire events to a Response.

    Rules:
    - ``message_start`` resets the accumulator from the message skeleton
    - blocks must start at the next free index; gaps and reorders are fatal
    - deltas and stops may only target a started, unstopped block
    - tool input fragments are buffered and parsed at ``content_block_stop``
    - ``message_delta`` overwrites top-level fields, usage field by field
    """

    def __init__(self) -> None:
        self.state = AccumulatorState()

    def apply(self, event: WireEvent) -> AccumulatorState:
        """Fold a single event into the accumulator."""
        if isinstance(event, MessageStartEvent):
            self._start_message(event)
        elif isinstance(event, ContentBlockStartEvent):
            self._start_block(event)
        elif isinstance(event, ContentBlockDeltaEvent):
            self._apply_delta(event)
        elif isinstance(event, ContentBlockStopEvent):
            self._stop_block(event)
        elif isinstance(event, MessageDeltaEvent):
            self._apply_message_delta(event)
        elif isinstance(event, MessageStopEvent):
            self._require_started(event)
            self.state.finished = True
        # Unknown and error events leave the state untouched

        return self.state

    def finalize(self) -> Response:
        """Validate the finished accumulator into a Response.

        Raises:
            StreamError: If ``message_stop`` has not been observed
            DecodeError: If the assembled message fails schema validation
        """
        if not self.state.finished:
            raise StreamError("Stream ended before message_stop")

        try:
            return Response.model_validate(self.state.to_dict())
        except ValidationError as e:
            raise DecodeError(f"Assembled response failed validation: {e}") from e

    def reset(self) -> None:
        """Reset accumulator state for a new stream."""
        self.state = AccumulatorState()

    def _start_message(self, event: MessageStartEvent) -> None:
        message = event.message
        self.state = AccumulatorState(
            id=message.id,
            type=message.type,
            role=message.role,
            model=message.model,
            usage=message.usage.model_dump(exclude_none=True),
            container=message.container.model_dump() if message.container else None,
            started=True,
        )

    def _start_block(self, event: ContentBlockStartEvent) -> None:
        self._require_started(event)
        expected = len(self.state.content)
        if event.index != expected:
            raise ProtocolError(
                f"content_block_start for index {event.index}, expected {expected}"
            )

        fields = event.content_block.model_dump(exclude_none=True)
        self.state.content.append(BlockState(fields=fields))

    def _apply_delta(self, event: ContentBlockDeltaEvent) -> None:
        block = self._open_block(event, event.index)
        delta = event.delta

        if isinstance(delta, TextDelta):
            self._require_block_type(block, delta.type, "text")
            block.fields["text"] = block.fields.get("text", "") + delta.text
        elif isinstance(delta, ThinkingDelta):
            self._require_block_type(block, delta.type, "thinking")
            block.fields["thinking"] = block.fields.get("thinking", "") + delta.thinking
        elif isinstance(delta, SignatureDelta):
            self._require_block_type(block, delta.type, "thinking")
            block.fields["signature"] = delta.signature
        elif isinstance(delta, InputJSONDelta):
            if block.type not in TOOL_USE_BLOCK_TYPES:
                raise ProtocolError(
                    f"input_json_delta for '{block.type}' block at index {event.index}"
                )
            block.partial_json = (block.partial_json or "") + delta.partial_json
        elif isinstance(delta, CitationsDelta):
            self._require_block_type(block, delta.type, "text")
            block.fields["citations"] = [*block.fields.get("citations", []), delta.citation]
        # Unknown delta types are ignored

    def _stop_block(self, event: ContentBlockStopEvent) -> None:
        block = self._open_block(event, event.index)

        if block.partial_json is not None:
            if block.partial_json.strip():
                try:
                    block.fields["input"] = json.loads(block.partial_json)
                except json.JSONDecodeError as e:
                    raise DecodeError(
                        f"Invalid tool input JSON for block {event.index}: {e}",
                        response_data={"partial_json": block.partial_json},
                    ) from e
            else:
                block.fields["input"] = {}
            block.partial_json = None

        block.stopped = True

    def _apply_message_delta(self, event: MessageDeltaEvent) -> None:
        self._require_started(event)
        delta = event.delta

        for name in delta.model_fields_set:
            if name == "container":
                self.state.container = delta.container.model_dump() if delta.container else None
            elif name in ("stop_reason", "stop_sequence"):
                setattr(self.state, name, getattr(delta, name))

        if event.usage is not None:
            self.state.usage.update(event.usage.model_dump(exclude_none=True))

    def _require_started(self, event: WireEvent) -> None:
        if not self.state.started:
            raise ProtocolError(f"{event.type} received before message_start")

    def _open_block(self, event: WireEvent, index: int) -> BlockState:
        self._require_started(event)
        if not 0 <= index < len(self.state.content):
            raise ProtocolError(f"{event.type} for unknown block index {index}")

        block = self.state.content[index]
        if block.stopped:
            raise ProtocolError(f"{event.type} for stopped block index {index}")
        return block

    @staticmethod
    def _require_block_type(block: BlockState, delta_type: str, block_type: str) -> None:
        if block.type != block_type:
            raise ProtocolError(f"{delta_type} cannot apply to a '{block.type}' block")


def assemble(events: Iterable[WireEvent]) -> AccumulatorState:
    """Fold a complete event sequence from an empty accumulator."""
    assembler = MessageAssembler()
    for event in events:
        assembler.apply(event)
    return assembler.state
