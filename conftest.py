"""
Shared fixtures: recorded event sequences and a fake SSE transport.
"""

import asyncio
import json

import httpx
import pytest

from messages_stream.llm.models import ClientConfig
from messages_stream.llm.client import MessagesClient
from messages_stream.llm.streaming.parser import build_event


TEXT_EVENTS = [
    {"type": "message_start", "message": {
        "content": [],
        "id": "msg_01AgC6AM5riFWbgj1ZoSgD1b",
        "model": "claude-3-sonnet-20240229",
        "role": "assistant",
        "stop_reason": None,
        "stop_sequence": None,
        "type": "message",
        "usage": {"input_tokens": 18, "output_tokens": 1},
    }},
    {"type": "content_block_start", "index": 0, "content_block": {"text": "", "type": "text"}},
    {"type": "content_block_delta", "index": 0, "delta": {"text": "Here", "type": "text_delta"}},
    {"type": "content_block_delta", "index": 0, "delta": {"text": "'s", "type": "text_delta"}},
    {"type": "content_block_delta", "index": 0, "delta": {"text": " a", "type": "text_delta"}},
    {"type": "content_block_delta", "index": 0, "delta": {"text": " haiku", "type": "text_delta"}},
    {"type": "content_block_stop", "index": 0},
    {"type": "message_delta", "delta": {"stop_reason": "end_turn", "stop_sequence": None}, "usage": {"output_tokens": 34}},
    {"type": "message_stop"},
]

TOOL_EVENTS = [
    {"type": "message_start", "message": {
        "content": [],
        "id": "msg_017cEgug4oBcJZ9BBpB4iFuS",
        "model": "claude-3-haiku-20240307",
        "role": "assistant",
        "stop_reason": None,
        "stop_sequence": None,
        "type": "message",
        "usage": {"cache_creation_input_tokens": 0, "cache_read_input_tokens": 0, "input_tokens": 348, "output_tokens": 4},
    }},
    {"type": "content_block_start", "index": 0, "content_block": {"text": "", "type": "text"}},
    {"type": "content_block_delta", "index": 0, "delta": {"text": "Here is the weather", "type": "text_delta"}},
    {"type": "content_block_delta", "index": 0, "delta": {"text": " for London:", "type": "text_delta"}},
    {"type": "content_block_stop", "index": 0},
    {"type": "content_block_start", "index": 1, "content_block": {
        "id": "toolu_01HkwGv3jQLx1fGJV8qfskQZ",
        "input": {},
        "name": "get_weather",
        "type": "tool_use",
    }},
    {"type": "content_block_delta", "index": 1, "delta": {"partial_json": "", "type": "input_json_delta"}},
    {"type": "content_block_delta", "index": 1, "delta": {"partial_json": "{\"location\"", "type": "input_json_delta"}},
    {"type": "content_block_delta", "index": 1, "delta": {"partial_json": ": \"Lond", "type": "input_json_delta"}},
    {"type": "content_block_delta", "index": 1, "delta": {"partial_json": "on\"}", "type": "input_json_delta"}},
    {"type": "content_block_stop", "index": 1},
    {"type": "message_delta", "delta": {"stop_reason": "tool_use", "stop_sequence": None}, "usage": {"output_tokens": 61}},
    {"type": "message_stop"},
]

# The same message as TOOL_EVENTS, as the non-streaming endpoint returns it
TOOL_RESPONSE = {
    "id": "msg_017cEgug4oBcJZ9BBpB4iFuS",
    "type": "message",
    "role": "assistant",
    "model": "claude-3-haiku-20240307",
    "content": [
        {"type": "text", "text": "Here is the weather for London:"},
        {"type": "tool_use", "id": "toolu_01HkwGv3jQLx1fGJV8qfskQZ", "name": "get_weather", "input": {"location": "London"}},
    ],
    "stop_reason": "tool_use",
    "stop_sequence": None,
    "usage": {"cache_creation_input_tokens": 0, "cache_read_input_tokens": 0, "input_tokens": 348, "output_tokens": 61},
}

THINKING_EVENTS = [
    {"type": "message_start", "message": {
        "content": [],
        "id": "msg_01GagrVPbxkxRgAPP8J74FyM",
        "model": "claude-3-7-sonnet-20250219",
        "role": "assistant",
        "stop_reason": None,
        "stop_sequence": None,
        "type": "message",
        "usage": {"cache_creation_input_tokens": 0, "cache_read_input_tokens": 0, "input_tokens": 45, "output_tokens": 8},
    }},
    {"type": "content_block_start", "index": 0, "content_block": {"signature": "", "thinking": "", "type": "thinking"}},
    {"type": "content_block_delta", "index": 0, "delta": {"thinking": "Let me count the number of letter", "type": "thinking_delta"}},
    {"type": "content_block_delta", "index": 0, "delta": {"thinking": " 'r's in the word \"strawberry\".", "type": "thinking_delta"}},
    {"type": "content_block_delta", "index": 0, "delta": {"signature": "EuYBCkQYAiJApKyEzxcNGnvx", "type": "signature_delta"}},
    {"type": "content_block_stop", "index": 0},
    {"type": "content_block_start", "index": 1, "content_block": {"text": "", "type": "text"}},
    {"type": "content_block_delta", "index": 1, "delta": {"text": "There are 3 r's in the word \"strawberry\".", "type": "text_delta"}},
    {"type": "content_block_stop", "index": 1},
    {"type": "message_delta", "delta": {"stop_reason": "end_turn", "stop_sequence": None}, "usage": {"output_tokens": 134}},
    {"type": "message_stop"},
]

SERVER_TOOL_EVENTS = [
    {"type": "message_start", "message": {
        "content": [],
        "id": "msg_01WebSearchExample",
        "model": "claude-sonnet-4-20250514",
        "role": "assistant",
        "stop_reason": None,
        "stop_sequence": None,
        "type": "message",
        "usage": {"input_tokens": 2101, "output_tokens": 3, "service_tier": "standard"},
    }},
    {"type": "content_block_start", "index": 0, "content_block": {
        "type": "server_tool_use", "id": "srvtoolu_01", "name": "web_search", "input": {},
    }},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": "{\"query\": \"Terry "}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "input_json_delta", "partial_json": "Nutkins born\"}"}},
    {"type": "content_block_stop", "index": 0},
    {"type": "content_block_start", "index": 1, "content_block": {
        "type": "web_search_tool_result",
        "tool_use_id": "srvtoolu_01",
        "content": [{"type": "web_search_result", "title": "Terry Nutkins", "url": "https://en.wikipedia.org/wiki/Terry_Nutkins", "encrypted_content": "abc", "page_age": None}],
    }},
    {"type": "content_block_stop", "index": 1},
    {"type": "content_block_start", "index": 2, "content_block": {"type": "text", "text": ""}},
    {"type": "content_block_delta", "index": 2, "delta": {"type": "text_delta", "text": "Born in 1946"}},
    {"type": "content_block_delta", "index": 2, "delta": {"type": "citations_delta", "citation": {
        "type": "web_search_result_location", "url": "https://en.wikipedia.org/wiki/Terry_Nutkins", "cited_text": "born 12 May 1946",
    }}},
    {"type": "content_block_stop", "index": 2},
    {"type": "message_delta", "delta": {"stop_reason": "end_turn", "stop_sequence": None}, "usage": {"output_tokens": 210, "server_tool_use": {"web_search_requests": 1}}},
    {"type": "message_stop"},
]


def to_sse(events: list[dict]) -> bytes:
    """Encode event payloads as SSE frames."""
    return b"".join(
        f"event: {event['type']}\ndata: {json.dumps(event)}\n\n".encode()
        for event in events
    )


def split_every(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class ChunkedStream(httpx.AsyncByteStream):
    """Response body that yields fixed chunks, optionally stalling before chunk ``stall_at``."""

    def __init__(self, chunks: list[bytes], stall_at: int | None = None, stall_for: float = 0.0):
        self.chunks = chunks
        self.stall_at = stall_at
        self.stall_for = stall_for
        self.closed = False

    async def __aiter__(self):
        for i, chunk in enumerate(self.chunks):
            if i == self.stall_at:
                await asyncio.sleep(self.stall_for)
            yield chunk
        if self.stall_at is not None and self.stall_at >= len(self.chunks):
            await asyncio.sleep(self.stall_for)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def text_events():
    return TEXT_EVENTS


@pytest.fixture
def tool_events():
    return TOOL_EVENTS


@pytest.fixture
def tool_response():
    return TOOL_RESPONSE


@pytest.fixture
def thinking_events():
    return THINKING_EVENTS


@pytest.fixture
def server_tool_events():
    return SERVER_TOOL_EVENTS


@pytest.fixture
def encode_sse():
    return to_sse


@pytest.fixture
def wire_events():
    """Turn event payload dicts into decoded wire events."""
    def factory(events: list[dict]):
        return [build_event(event["type"], event) for event in events]
    return factory


@pytest.fixture
def sse_handler():
    """Build a MockTransport handler serving an SSE body, recording requests."""
    def factory(
        payload: bytes,
        *,
        chunk_size: int | None = None,
        stall_at: int | None = None,
        stall_for: float = 0.0,
        requests: list | None = None,
    ):
        chunks = split_every(payload, chunk_size) if chunk_size else [payload]

        def handler(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                stream=ChunkedStream(chunks, stall_at=stall_at, stall_for=stall_for),
            )
        return handler
    return factory


@pytest.fixture
def make_client():
    """Build a MessagesClient over a MockTransport handler."""
    def factory(handler, **overrides) -> MessagesClient:
        config = ClientConfig(
            api_key="test-key",
            base_url="https://api.test/v1",
            **overrides,
        )
        return MessagesClient(config, transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def request_body():
    return {
        "model": "claude-3-sonnet-20240229",
        "max_tokens": 1024,
        "messages": [{"role": "user", "content": "Write a haiku about the sky."}],
    }
