"""
Consumption views over a streaming Messages request.

A StreamingResponse can be consumed exactly once, through one of:
- ``await run()``: assemble and return the final Response
- ``stream()``: async iterator of raw wire events
- ``text_stream()``: async iterator of text fragments

Handlers registered with ``on()`` are called synchronously, in registration
order, as events arrive:

    response = await (
        client.stream_message(body)
        .on("text", lambda text: print(text, end=""))
        .on("complete", lambda res: print(res.usage))
        .run()
    )
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any

from ...logging_utils import ErrorHandler, operation_context
from ..exceptions import LLMError, StreamConsumedError
from ..models import Response
from .assembler import MessageAssembler
from .models import (
    ContentBlockDeltaEvent,
    MessageStopEvent,
    StreamCompleted,
    StreamEventType,
    StreamFailed,
    StreamingStats,
    TextDelta,
    WireEvent,
)
from .relay import StreamSession

EventHandler = Callable[[Any], Any]


class StreamingResponse:
    """Single-use handle on one streaming request."""

    def __init__(self, session: StreamSession):
        self.session = session
        self.handlers: list[tuple[StreamEventType, EventHandler]] = []
        self._consumed_by: str | None = None
        self._error_dispatched = False

    def on(self, event: StreamEventType | str, handler: EventHandler) -> StreamingResponse:
        """
        Register a handler for ``event``, returning self for chaining.

        Args:
            event: One of "event", "text", "complete", "error"
            handler: Callable taking one argument (wire event, text fragment,
                final Response or error respectively)

        Raises:
            ValueError: If the event type is unknown
            TypeError: If handler is not callable
        """
        try:
            event_type = StreamEventType(event)
        except ValueError:
            raise ValueError(f"Unknown stream event type: {event!r}") from None

        if not callable(handler):
            raise TypeError(f"Handler for '{event_type.value}' must be callable")

        self.handlers.append((event_type, handler))
        return self

    async def run(self) -> Response:
        """
        Consume the stream and return the assembled Response.

        Raises:
            LLMError: Any transport, HTTP, stream, timeout or decode failure,
                after the error handlers have been called
            StreamConsumedError: If this response was already consumed
        """
        self._claim("run")
        assembler = MessageAssembler()

        async with operation_context(
            "stream_run", context={"session_id": self.session.id}
        ):
            try:
                async with aclosing(self._events()) as events:
                    async for event in events:
                        self._dispatch_event(event)
                        assembler.apply(event)
                        if isinstance(event, MessageStopEvent):
                            break
                response = assembler.finalize()
            except LLMError as e:
                self._dispatch_error(e)
                raise
            finally:
                await self.session.aclose()

            self._call_handlers(StreamEventType.COMPLETE, response)
            return response

    def stream(self) -> AsyncIterator[WireEvent]:
        """Consume the stream as raw wire events, in arrival order.

        A terminal error is raised from the iterator rather than yielded.
        """
        self._claim("stream")
        return self._stream()

    def text_stream(self) -> AsyncIterator[str]:
        """Consume the stream as text fragments from ``text_delta`` events."""
        self._claim("text_stream")
        return self._text_stream()

    def cancel(self) -> None:
        """Abort the request; a waiting consumer gets StreamCancelledError."""
        self.session.cancel()

    async def aclose(self) -> None:
        """Abort the request and wait for the connection to be released."""
        await self.session.aclose()

    def get_stats(self) -> StreamingStats:
        """Get statistics for the underlying session."""
        return self.session.get_stats()

    async def __aenter__(self) -> StreamingResponse:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _stream(self) -> AsyncIterator[WireEvent]:
        # Fold only when someone is waiting for the final Response
        assembler = (
            MessageAssembler() if self._has_handlers(StreamEventType.COMPLETE) else None
        )

        try:
            async with aclosing(self._events()) as events:
                async for event in events:
                    self._dispatch_event(event)
                    if assembler is not None:
                        assembler.apply(event)
                    yield event

            if assembler is not None:
                self._call_handlers(StreamEventType.COMPLETE, assembler.finalize())
        except LLMError as e:
            self._dispatch_error(e)
            raise
        finally:
            await self.session.aclose()

    async def _text_stream(self) -> AsyncIterator[str]:
        async with aclosing(self._stream()) as events:
            async for event in events:
                if isinstance(event, ContentBlockDeltaEvent) and isinstance(
                    event.delta, TextDelta
                ):
                    yield event.delta.text

    async def _events(self) -> AsyncIterator[WireEvent]:
        self.session.start()
        while True:
            message = await self.session.receive()
            if isinstance(message, StreamCompleted):
                return
            if isinstance(message, StreamFailed):
                raise message.error
            yield message

    def _claim(self, adapter: str) -> None:
        if self._consumed_by is not None:
            raise StreamConsumedError(
                f"Streaming response already consumed by {self._consumed_by}(); "
                f"cannot call {adapter}()"
            )
        self._consumed_by = adapter

    def _has_handlers(self, event_type: StreamEventType) -> bool:
        return any(kind is event_type for kind, _ in self.handlers)

    def _call_handlers(self, event_type: StreamEventType, data: Any) -> None:
        for kind, handler in self.handlers:
            if kind is event_type:
                handler(data)

    def _dispatch_event(self, event: WireEvent) -> None:
        self._call_handlers(StreamEventType.EVENT, event)
        if isinstance(event, ContentBlockDeltaEvent) and isinstance(event.delta, TextDelta):
            self._call_handlers(StreamEventType.TEXT, event.delta.text)

    def _dispatch_error(self, error: LLMError) -> None:
        if self._error_dispatched:
            return
        self._error_dispatched = True
        ErrorHandler.log_error(
            error, "stream_consume", context={"session_id": self.session.id}
        )
        self._call_handlers(StreamEventType.ERROR, error)
