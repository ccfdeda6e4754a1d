"""
Producer/consumer plumbing for one streaming request.

The producer task owns the HTTP request: it decodes each received chunk and
forwards events, in decode order, through a bounded queue. The consumer side
receives from that queue with its own inactivity timeout and a cancellation
event, so a stalled stream always ends in an explicit error.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import Counter
from typing import Any

import httpx

from ...logging_utils import ContextualLogger
from ..exceptions import (
    DecodeError,
    HTTPError,
    LLMError,
    StreamCancelledError,
    StreamError,
    StreamTimeoutError,
    TransportError,
)
from .models import (
    ErrorEvent,
    EventKind,
    RelayMessage,
    StreamCompleted,
    StreamFailed,
    StreamingStats,
    WireEvent,
)
from .parser import FrameDecoder

# Constants
DEFAULT_PRODUCER_TIMEOUT = 30.0
DEFAULT_RELAY_TIMEOUT = 15.0
DEFAULT_QUEUE_SIZE = 256
STREAMING_CONTENT_TYPE = "text/event-stream"
REQUEST_ID_HEADER = "request-id"


class StreamRelay:
    """Bounded, ordered channel from the producer to the active consumer."""

    def __init__(
        self,
        timeout: float = DEFAULT_RELAY_TIMEOUT,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ):
        self.timeout = timeout
        self._queue: asyncio.Queue[RelayMessage] = asyncio.Queue(maxsize=maxsize)
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def send(self, message: RelayMessage) -> None:
        """Enqueue a message, waiting while the consumer is behind."""
        await self._queue.put(message)

    async def receive(self) -> RelayMessage:
        """
        Wait for the next message, skipping unknown-kind events.

        Raises:
            StreamTimeoutError: If nothing arrives within ``timeout`` seconds
            StreamCancelledError: If the relay is cancelled while waiting
        """
        while True:
            message = await self._receive_one()
            if isinstance(message, WireEvent) and message.kind is EventKind.UNKNOWN:
                continue
            return message

    def cancel(self) -> None:
        """Wake any pending receive with StreamCancelledError."""
        self._cancelled.set()

    async def _receive_one(self) -> RelayMessage:
        if self._cancelled.is_set():
            raise StreamCancelledError()

        getter = asyncio.ensure_future(self._queue.get())
        canceller = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, canceller},
                timeout=self.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (getter, canceller):
                if not waiter.done():
                    waiter.cancel()

        if getter in done:
            return getter.result()
        if canceller in done:
            raise StreamCancelledError()
        raise StreamTimeoutError(
            f"No stream message received within {self.timeout}s",
            source="relay",
            timeout=self.timeout,
        )


class StreamSession:
    """
    One in-flight streaming request.

    Features:
    - Lazy start: the request is issued when the first consumer is ready
    - Producer inactivity timeout measured from the last network read
    - Relay inactivity timeout on the consumer side
    - Cancellation that aborts the HTTP request and wakes the consumer
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        body: dict[str, Any],
        *,
        url: str = "/messages",
        producer_timeout: float = DEFAULT_PRODUCER_TIMEOUT,
        relay_timeout: float = DEFAULT_RELAY_TIMEOUT,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self.id = uuid.uuid4().hex[:12]
        self.body = body
        self.url = url
        self.producer_timeout = producer_timeout
        self.relay = StreamRelay(timeout=relay_timeout, maxsize=queue_size)
        self.decoder = FrameDecoder()
        self.logger = ContextualLogger({
            "session_id": self.id,
            "model": body.get("model"),
        })

        self._client = client
        self._task: asyncio.Task[None] | None = None
        self._events_by_kind: Counter[str] = Counter()
        self._started_at: float | None = None
        self._first_event_at: float | None = None
        self._finished_at: float | None = None

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def cancelled(self) -> bool:
        return self.relay.cancelled

    def start(self) -> None:
        """Issue the request in a producer task. Idempotent; a no-op once cancelled."""
        if self._task is not None or self.relay.cancelled:
            return
        self._started_at = time.perf_counter()
        self._task = asyncio.create_task(
            self._produce(), name=f"stream-producer-{self.id}"
        )
        self.logger.debug("Stream producer started", url=self.url)

    async def receive(self) -> RelayMessage:
        """Receive the next relayed message."""
        return await self.relay.receive()

    def cancel(self) -> None:
        """Stop the producer, abort the HTTP request and wake the consumer."""
        self.relay.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self.logger.debug("Stream producer cancelled")

    async def aclose(self) -> None:
        """Cancel and wait for the producer to release the connection."""
        self.cancel()
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.error(
                "Stream producer exited with an error",
                error_type=type(e).__name__,
                error_message=str(e),
            )

    def get_stats(self) -> StreamingStats:
        """Generate streaming statistics."""
        decoder_stats = self.decoder.get_stats()
        started = self._started_at
        first_event_latency = (
            self._first_event_at - started
            if started is not None and self._first_event_at is not None
            else 0.0
        )
        end = self._finished_at if self._finished_at is not None else time.perf_counter()
        duration = end - started if started is not None else 0.0

        return StreamingStats(
            total_events=decoder_stats['total_events'],
            events_by_kind=dict(self._events_by_kind),
            total_chunks=decoder_stats['total_chunks'],
            total_bytes=decoder_stats['total_bytes'],
            first_event_latency=first_event_latency,
            total_duration=duration,
        )

    async def _produce(self) -> None:
        try:
            async with self._client.stream(
                "POST", self.url, json=self.body
            ) as response:
                self.logger = self.logger.bind(
                    request_id=response.headers.get(REQUEST_ID_HEADER)
                )
                self.logger.debug(
                    "Stream response received", status_code=response.status_code
                )

                if not response.is_success:
                    error_body = await response.aread()
                    await self._fail(
                        HTTPError.from_response(response.status_code, error_body)
                    )
                    return

                content_type = response.headers.get("content-type", "")
                if STREAMING_CONTENT_TYPE not in content_type:
                    await self._fail(DecodeError(
                        f"Expected streaming response, got content-type: {content_type}",
                        status_code=response.status_code,
                    ))
                    return

                if await self._pump(response):
                    self._finish()
                    await self.relay.send(StreamCompleted(response.status_code))

        except httpx.TimeoutException as e:
            await self._fail(StreamTimeoutError(
                f"HTTP timeout during stream: {e}",
                source="producer",
                timeout=self.producer_timeout,
            ))
        except httpx.TransportError as e:
            await self._fail(TransportError(f"Transport error: {e}"))
        except httpx.DecodingError as e:
            await self._fail(DecodeError(f"Invalid response body encoding: {e}"))
        except httpx.HTTPError as e:
            await self._fail(TransportError(f"HTTP error during stream: {e}"))
        except LLMError as e:
            await self._fail(e)
        except Exception as e:
            self.logger.error(
                "Unexpected stream producer error",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            await self._fail(TransportError(f"Stream producer error: {e}"))

    async def _pump(self, response: httpx.Response) -> bool:
        """Forward decoded events until the body ends. False if a terminal error was sent."""
        chunks = response.aiter_bytes()

        while True:
            try:
                async with asyncio.timeout(self.producer_timeout):
                    chunk = await anext(chunks)
            except StopAsyncIteration:
                break
            except TimeoutError:
                await self._fail(StreamTimeoutError(
                    f"No data received from server within {self.producer_timeout}s",
                    source="producer",
                    timeout=self.producer_timeout,
                ))
                return False

            for event in self.decoder.feed(chunk):
                self._record(event)
                if isinstance(event, ErrorEvent):
                    await self._fail(StreamError.from_event(event.error.model_dump()))
                    return False
                await self.relay.send(event)

        if self.decoder.has_pending:
            self.logger.warning(
                "Stream ended with an incomplete frame",
                pending_bytes=len(self.decoder.buffer),
            )
        return True

    def _record(self, event: WireEvent) -> None:
        if self._first_event_at is None:
            self._first_event_at = time.perf_counter()
        self._events_by_kind[event.type] += 1

    def _finish(self) -> None:
        self._finished_at = time.perf_counter()
        stats = self.get_stats()
        self.logger.info(
            "Stream completed",
            total_events=stats.total_events,
            total_bytes=stats.total_bytes,
            duration_ms=round(stats.total_duration * 1000, 2),
        )

    async def _fail(self, error: LLMError) -> None:
        self._finished_at = time.perf_counter()
        self.logger.warning(
            "Stream producer failed",
            error_type=type(error).__name__,
            error_message=str(error),
        )
        await self.relay.send(StreamFailed(error))
