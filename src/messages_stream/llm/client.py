"""
Direct HTTP client for the Messages API.
Single-shot requests and streaming sessions over one httpx.AsyncClient.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..logging_utils import log_operation, setup_logging
from .exceptions import DecodeError, HTTPError, StreamTimeoutError, TransportError
from .models import ClientConfig, Response
from .streaming.relay import StreamSession
from .streaming.response import StreamingResponse

if TYPE_CHECKING:
    from ..config import Configuration

MESSAGES_PATH = "/messages"


class MessagesClient:
    """
    Messages API client.

    The request body is sent as given; building and validating it is the
    caller's job. No request is retried.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client and its HTTP connection pool."""
        self.config = config
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "x-api-key": config.api_key,
                "anthropic-version": config.anthropic_version,
                "user-agent": config.user_agent,
            },
            timeout=httpx.Timeout(
                config.read_timeout, connect=config.connect_timeout
            ),
            transport=transport,
        )

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> MessagesClient:
        """Build a client from YAML/env configuration and set up logging."""
        setup_logging(configuration.get_logging_config())
        return cls(ClientConfig.from_configuration(configuration))

    @log_operation("create_message", context={"endpoint": MESSAGES_PATH})
    async def create_message(self, body: dict[str, Any]) -> Response:
        """Send a non-streaming request and return the validated Response."""
        try:
            response = await self.client.post(
                MESSAGES_PATH, json={**body, "stream": False}
            )
        except httpx.TimeoutException as e:
            raise StreamTimeoutError(
                f"HTTP timeout: {e}", source="transport", timeout=self.config.read_timeout
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"Transport error: {e}") from e

        if not response.is_success:
            raise HTTPError.from_response(response.status_code, response.content)

        try:
            return Response.model_validate_json(response.content)
        except ValidationError as e:
            raise DecodeError(
                f"Invalid response body: {e}", status_code=response.status_code
            ) from e

    def stream_message(self, body: dict[str, Any]) -> StreamingResponse:
        """
        Prepare a streaming request.

        Nothing is sent until the returned StreamingResponse is consumed with
        ``run()``, ``stream()`` or ``text_stream()``.
        """
        session = StreamSession(
            self.client,
            {**body, "stream": True},
            url=MESSAGES_PATH,
            producer_timeout=self.config.producer_timeout,
            relay_timeout=self.config.relay_timeout,
            queue_size=self.config.queue_size,
        )
        return StreamingResponse(session)

    async def aclose(self) -> None:
        """Close the HTTP client and its connection pool."""
        await self.client.aclose()

    async def __aenter__(self) -> MessagesClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.aclose()
