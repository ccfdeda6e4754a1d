#!/usr/bin/env python3
"""
Tests for MessagesClient single-shot requests and client construction.
"""

import json

import httpx
import pytest

from messages_stream.llm.client import MessagesClient
from messages_stream.llm.exceptions import (
    DecodeError,
    HTTPError,
    StreamTimeoutError,
    TransportError,
)
from messages_stream.llm.models import ClientConfig, ToolUseBlock
from messages_stream.llm.streaming.response import StreamingResponse


class TestCreateMessage:
    """Test non-streaming requests."""

    @pytest.mark.asyncio
    async def test_success(self, make_client, tool_response, request_body):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=tool_response)

        async with make_client(handler) as client:
            response = await client.create_message(request_body)

        assert response.id == tool_response["id"]
        assert isinstance(response.content[1], ToolUseBlock)
        assert response.content[1].input == {"location": "London"}
        assert response.usage.output_tokens == 61

        body = json.loads(requests[0].content)
        assert body["stream"] is False
        assert body["model"] == request_body["model"]
        assert requests[0].headers["x-api-key"] == "test-key"

    @pytest.mark.asyncio
    async def test_api_error(self, make_client, request_body):
        client = make_client(lambda request: httpx.Response(429, json={
            "type": "error",
            "error": {"type": "rate_limit_error", "message": "Rate limited"},
        }))

        with pytest.raises(HTTPError) as exc_info:
            await client.create_message(request_body)

        error = exc_info.value
        assert error.status_code == 429
        assert error.error_type == "rate_limit_error"
        assert error.message == "Rate limited"
        assert error.response_data["error"]["type"] == "rate_limit_error"

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, make_client, request_body):
        client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(HTTPError, match="Bad Gateway") as exc_info:
            await client.create_message(request_body)

        assert exc_info.value.error_type is None

    @pytest.mark.asyncio
    async def test_invalid_body(self, make_client, request_body):
        client = make_client(lambda request: httpx.Response(200, json={"id": "msg_1"}))

        with pytest.raises(DecodeError) as exc_info:
            await client.create_message(request_body)

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_connect_error(self, make_client, request_body):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        with pytest.raises(TransportError):
            await make_client(handler).create_message(request_body)

    @pytest.mark.asyncio
    async def test_read_timeout(self, make_client, request_body):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(StreamTimeoutError) as exc_info:
            await make_client(handler, read_timeout=5.0).create_message(request_body)

        assert exc_info.value.source == "transport"
        assert exc_info.value.timeout == 5.0


class TestStreamMessage:
    """Test streaming request preparation."""

    def test_returns_unstarted_response(self, make_client, request_body):
        calls = []
        client = make_client(lambda request: calls.append(request))

        streaming = client.stream_message(request_body)

        assert isinstance(streaming, StreamingResponse)
        assert not streaming.session.started
        assert streaming.session.body["stream"] is True
        assert "stream" not in request_body
        assert calls == []

    def test_session_uses_client_timeouts(self, make_client, request_body):
        client = make_client(
            lambda request: None,
            producer_timeout=3.0,
            relay_timeout=2.0,
            queue_size=8,
        )

        session = client.stream_message(request_body).session

        assert session.producer_timeout == 3.0
        assert session.relay.timeout == 2.0
        assert session.relay._queue.maxsize == 8


class TestClientConfig:
    """Test ClientConfig construction."""

    def test_from_dict_ignores_unknown_keys(self):
        config = ClientConfig.from_dict(
            {"base_url": "https://example.test/v1", "level": "DEBUG", "api_key": "ignored"},
            api_key="real-key",
        )

        assert config.api_key == "real-key"
        assert config.base_url == "https://example.test/v1"
        assert config.relay_timeout == 15.0

    def test_headers(self):
        client = MessagesClient(ClientConfig(api_key="k", user_agent="agent/1.0"))

        assert client.client.headers["x-api-key"] == "k"
        assert client.client.headers["anthropic-version"] == "2023-06-01"
        assert client.client.headers["user-agent"] == "agent/1.0"
        assert str(client.client.base_url) == "https://api.anthropic.com/v1/"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
