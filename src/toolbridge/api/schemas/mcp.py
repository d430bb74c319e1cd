"""MCP API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from toolbridge.mcp.errors import ErrorCategory
from toolbridge.mcp.registry import ServerStatus
from toolbridge.models.messages import Message, ToolCall


class MCPServerToolResponse(BaseModel):
    """Tool exposed by one server, without its execute hook."""

    description: str | None
    parameters: dict[str, Any]


class MCPServerResponse(BaseModel):
    """MCP server status payload."""

    name: str
    type: str | None
    target: str | None
    status: ServerStatus
    error: str | None = None
    error_category: ErrorCategory | None = None
    tools: dict[str, MCPServerToolResponse] | None = None
    config: Any = None
    checked_at: datetime


class MCPServersResponse(BaseModel):
    """Collection of MCP servers in configuration order."""

    items: list[MCPServerResponse]


class MCPToolResponse(BaseModel):
    """One entry of the global tool namespace."""

    name: str
    server: str
    description: str | None
    parameters: dict[str, Any]


class MCPToolCollisionResponse(BaseModel):
    """Tool name registered by two servers; the later one won."""

    tool_name: str
    previous_server: str
    winning_server: str


class MCPToolsResponse(BaseModel):
    """Global tool namespace, stripped of execute hooks."""

    items: list[MCPToolResponse]
    collisions: list[MCPToolCollisionResponse] = Field(default_factory=list)


class ToolInvocationsRequest(BaseModel):
    """Conversation to resolve plus newly proposed calls to announce."""

    messages: list[Message]
    tool_calls: list[ToolCall] = Field(default_factory=list)


class ToolInvocationsResponse(BaseModel):
    """Resolved conversation and the stream parts written while resolving it."""

    messages: list[Message]
    stream: list[str]
