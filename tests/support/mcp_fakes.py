from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from mcp import types

from toolbridge.mcp.config import ServerConfig, StdioServerConfig
from toolbridge.mcp.registry import ServerRecord, ServerStatus
from toolbridge.mcp.tools import Tool


def tool_descriptor(name: str, description: str | None = None) -> types.Tool:
    return types.Tool(
        name=name,
        description=description,
        inputSchema={"type": "object", "properties": {"text": {"type": "string"}}},
    )


def target_of(config: ServerConfig) -> str:
    if isinstance(config, StdioServerConfig):
        return config.command
    return str(config.url)


@dataclass
class FakeServer:
    tools: list[types.Tool] = field(default_factory=list)
    handlers: dict[str, Callable[[dict[str, Any]], Any]] = field(default_factory=dict)
    error_tools: set[str] = field(default_factory=set)
    connect_error: Exception | None = None
    initialize_delay: float = 0.0
    list_error: Exception | None = None
    list_delay: float = 0.0
    close_delay: float = 0.0
    opened: int = 0
    closed: int = 0
    list_calls: int = 0
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)


class FakeSession:
    def __init__(self, server: FakeServer) -> None:
        self._server = server

    async def initialize(self) -> None:
        if self._server.initialize_delay:
            await asyncio.sleep(self._server.initialize_delay)

    async def list_tools(self) -> types.ListToolsResult:
        self._server.list_calls += 1
        if self._server.list_delay:
            await asyncio.sleep(self._server.list_delay)
        if self._server.list_error is not None:
            raise self._server.list_error
        return types.ListToolsResult(tools=list(self._server.tools))

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> types.CallToolResult:
        args = arguments or {}
        self._server.calls.append((name, args))
        handler = self._server.handlers.get(name)
        value = handler(args) if handler is not None else args.get("text", "")
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=str(value))],
            isError=name in self._server.error_tools,
        )


class FakeSessionFactory:
    """Session factory keyed by stdio command or server URL."""

    def __init__(self, servers: dict[str, FakeServer]) -> None:
        self.servers = servers

    def __call__(self, config: ServerConfig) -> Any:
        return self._session(config)

    @asynccontextmanager
    async def _session(self, config: ServerConfig) -> AsyncIterator[FakeSession]:
        server = self.servers.get(target_of(config))
        if server is None:
            raise ConnectionRefusedError(f"no server at {target_of(config)}")
        if server.connect_error is not None:
            raise server.connect_error
        server.opened += 1
        try:
            yield FakeSession(server)
        finally:
            if server.close_delay:
                await asyncio.sleep(server.close_delay)
            server.closed += 1


def available_record(name: str, tools: dict[str, Tool]) -> ServerRecord:
    return ServerRecord(
        name=name,
        raw_config={"command": name},
        config=StdioServerConfig(command=name),
        status=ServerStatus.AVAILABLE,
        tools=tools,
    )
