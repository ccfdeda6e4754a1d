"""
Core Messages API models with schema validation.

This module provides the foundational models for Messages API interactions:
- Client configuration
- Content block variants (closed, discriminated by ``type``)
- Token usage tracking
- The final assembled response
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from ..config import Configuration

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_API_VERSION = "2023-06-01"


class _Block(BaseModel):
    model_config = ConfigDict(extra="allow")


class TextBlock(_Block):
    type: Literal["text"] = "text"
    text: str
    citations: list[dict[str, Any]] | None = None


class ThinkingBlock(_Block):
    type: Literal["thinking"] = "thinking"
    thinking: str
    signature: str


class RedactedThinkingBlock(_Block):
    type: Literal["redacted_thinking"] = "redacted_thinking"
    data: str


class ToolUseBlock(_Block):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class MCPToolUseBlock(_Block):
    type: Literal["mcp_tool_use"] = "mcp_tool_use"
    id: str
    name: str
    server_name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ServerToolUseBlock(_Block):
    """Tool call executed by the API itself (web search, code execution)."""
    type: Literal["server_tool_use"] = "server_tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(_Block):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[dict[str, Any]]
    is_error: bool | None = None


class MCPToolResultBlock(_Block):
    type: Literal["mcp_tool_result"] = "mcp_tool_result"
    tool_use_id: str
    content: str | list[dict[str, Any]]
    is_error: bool | None = None


class WebSearchToolResultBlock(_Block):
    type: Literal["web_search_tool_result"] = "web_search_tool_result"
    tool_use_id: str
    content: list[dict[str, Any]] | dict[str, Any]


class CodeExecutionToolResultBlock(_Block):
    type: Literal["code_execution_tool_result"] = "code_execution_tool_result"
    tool_use_id: str
    content: dict[str, Any]


class ContainerUploadBlock(_Block):
    type: Literal["container_upload"] = "container_upload"
    file_id: str


ContentBlock = Annotated[
    TextBlock
    | ThinkingBlock
    | RedactedThinkingBlock
    | ToolUseBlock
    | MCPToolUseBlock
    | ServerToolUseBlock
    | ToolResultBlock
    | MCPToolResultBlock
    | WebSearchToolResultBlock
    | CodeExecutionToolResultBlock
    | ContainerUploadBlock,
    Field(discriminator="type"),
]

# Block types whose ``input`` is streamed as raw JSON fragments
TOOL_USE_BLOCK_TYPES = frozenset({"tool_use", "mcp_tool_use", "server_tool_use"})


class Usage(BaseModel):
    """Token usage statistics."""
    model_config = ConfigDict(extra="allow")

    input_tokens: int
    output_tokens: int
    cache_creation: dict[str, Any] | None = None
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    server_tool_use: dict[str, Any] | None = None
    service_tier: str | None = None


class Container(BaseModel):
    """Code execution container attached to a response."""
    id: str
    expires_at: str


class Response(BaseModel):
    """Complete assistant message, as returned by the non-streaming API."""
    id: str
    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"
    model: str
    content: list[ContentBlock]
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage
    container: Container | None = None


@dataclass(frozen=True)
class ClientConfig:
    """Client and streaming configuration."""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    anthropic_version: str = DEFAULT_API_VERSION
    user_agent: str = "messages-stream/0.1.0"

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 60.0

    # Streaming settings
    producer_timeout: float = 30.0
    relay_timeout: float = 15.0
    queue_size: int = 256

    @classmethod
    def from_dict(cls, config: dict[str, Any], api_key: str) -> ClientConfig:
        """Build from a flat dict, ignoring keys this class does not know."""
        known = {k: v for k, v in config.items() if k in cls.__dataclass_fields__}
        known.pop("api_key", None)
        return cls(api_key=api_key, **known)

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> ClientConfig:
        """Build from the YAML/env backed Configuration."""
        merged = {
            **configuration.get_client_config(),
            **configuration.get_streaming_config(),
        }
        return cls.from_dict(merged, configuration.api_key)
