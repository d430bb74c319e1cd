"""Transport-specific MCP clients for stdio, SSE and streamable HTTP servers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from datetime import timedelta
from typing import Any, Protocol, cast

import httpx

from toolbridge.mcp.config import (
    ServerConfig,
    SSEServerConfig,
    StdioServerConfig,
    StreamableHTTPServerConfig,
)
from toolbridge.mcp.errors import ServerConnectionError, ToolDiscoveryError
from toolbridge.mcp.tools import ToolSet, tool_from_descriptor

logger = logging.getLogger(__name__)


class MCPSession(Protocol):
    """Minimal MCP SDK session surface used by the client."""

    async def initialize(self) -> Any:
        """Run MCP initialize handshake."""

    async def list_tools(self) -> Any:
        """List tools exposed by the server."""

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> Any:
        """Call one tool via MCP SDK."""


class SessionFactory(Protocol):
    """Factory for config-bound MCP session contexts."""

    def __call__(self, config: ServerConfig) -> AbstractAsyncContextManager[MCPSession]:
        """Return async context manager for one server session."""


class SDKSessionFactory:
    """Session factory backed by the MCP Python SDK transports."""

    def __init__(self, *, request_timeout_seconds: float = 30.0) -> None:
        self._request_timeout_seconds = request_timeout_seconds

    def __call__(self, config: ServerConfig) -> AbstractAsyncContextManager[MCPSession]:
        match config:
            case StdioServerConfig():
                return self._stdio_session(config)
            case SSEServerConfig():
                return self._sse_session(config)
            case StreamableHTTPServerConfig():
                return self._streamable_http_session(config)
        msg = f"Unsupported MCP server type: {getattr(config, 'type', None)!r}"
        raise ValueError(msg)

    @asynccontextmanager
    async def _stdio_session(self, config: StdioServerConfig) -> AsyncIterator[MCPSession]:
        from mcp import StdioServerParameters
        from mcp.client.stdio import stdio_client

        params = StdioServerParameters(
            command=config.command,
            args=list(config.args or []),
            env=config.env,
            cwd=config.cwd,
        )
        async with stdio_client(params) as (read, write):
            async with self._client_session(read, write) as session:
                yield session

    @asynccontextmanager
    async def _sse_session(self, config: SSEServerConfig) -> AsyncIterator[MCPSession]:
        from mcp.client.sse import sse_client

        async with sse_client(
            str(config.url),
            headers=config.headers,
            timeout=self._request_timeout_seconds,
        ) as (read, write):
            async with self._client_session(read, write) as session:
                yield session

    @asynccontextmanager
    async def _streamable_http_session(
        self,
        config: StreamableHTTPServerConfig,
    ) -> AsyncIterator[MCPSession]:
        from mcp.client.streamable_http import streamablehttp_client

        timeout = timedelta(seconds=self._request_timeout_seconds)
        async with streamablehttp_client(
            url=str(config.url),
            headers=config.headers,
            timeout=timeout,
        ) as (read, write, _):
            async with self._client_session(read, write) as session:
                yield session

    @asynccontextmanager
    async def _client_session(self, read: Any, write: Any) -> AsyncIterator[MCPSession]:
        from mcp.client.session import ClientSession

        timeout = timedelta(seconds=self._request_timeout_seconds)
        async with ClientSession(read, write, read_timeout_seconds=timeout) as session:
            yield cast(MCPSession, session)


class MCPClient:
    """Live connection to one MCP server.

    The transport and session contexts are entered and exited by a single
    runner task, so `close()` is safe to call from any task.
    """

    def __init__(
        self,
        server_name: str,
        config: ServerConfig,
        *,
        session_factory: SessionFactory,
    ) -> None:
        self.server_name = server_name
        self.config = config
        self._session_factory = session_factory
        self._session: MCPSession | None = None
        self._runner: asyncio.Task[None] | None = None
        self._shutdown = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._session is not None and self._runner is not None and not self._runner.done()

    async def connect(self, *, timeout: float | None = None) -> None:
        """Open the transport and complete the initialize handshake."""
        if self._runner is not None:
            return
        self._shutdown = asyncio.Event()
        ready: asyncio.Future[MCPSession] = asyncio.get_running_loop().create_future()
        self._runner = asyncio.create_task(
            self._run(ready),
            name=f"mcp-client:{self.server_name}",
        )
        try:
            self._session = await asyncio.wait_for(ready, timeout)
        except TimeoutError as exc:
            await self._abort()
            msg = f"timed out connecting to server {self.server_name!r}"
            raise ServerConnectionError(msg, server=self.server_name) from exc
        except Exception as exc:
            await self._abort()
            msg = f"could not connect to server {self.server_name!r}: {describe_failure(exc)}"
            raise ServerConnectionError(msg, server=self.server_name) from exc

    async def tools(self) -> ToolSet:
        """Fetch the server's tools as executable `Tool` objects."""
        session = self._session
        if session is None or not self.connected:
            msg = f"server {self.server_name!r} is not connected"
            raise ToolDiscoveryError(msg, server=self.server_name)
        try:
            listed = await session.list_tools()
        except Exception as exc:
            msg = f"could not list tools for server {self.server_name!r}: {describe_failure(exc)}"
            raise ToolDiscoveryError(msg, server=self.server_name) from exc
        return {item.name: tool_from_descriptor(item, session) for item in listed.tools}

    async def close(self) -> None:
        """Leave the session and transport contexts, ending the subprocess or stream."""
        runner, self._runner = self._runner, None
        self._session = None
        if runner is None:
            return
        self._shutdown.set()
        await runner

    async def _run(self, ready: asyncio.Future[MCPSession]) -> None:
        try:
            async with AsyncExitStack() as stack:
                session = await stack.enter_async_context(self._session_factory(self.config))
                await session.initialize()
                if ready.done():
                    return
                ready.set_result(session)
                await self._shutdown.wait()
        except asyncio.CancelledError:
            if not ready.done():
                ready.cancel()
            raise
        except Exception as exc:
            if not ready.done():
                ready.set_exception(exc)
                return
            logger.warning("Session for server %r ended with error: %s", self.server_name, exc)
        finally:
            self._session = None

    async def _abort(self) -> None:
        runner, self._runner = self._runner, None
        self._session = None
        if runner is None or runner.done():
            return
        runner.cancel()
        await asyncio.gather(runner, return_exceptions=True)


def describe_failure(exc: BaseException) -> str:
    """Short reason for a transport failure, unwrapping task-group exception groups."""
    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    if isinstance(exc, httpx.TimeoutException):
        return f"network timeout ({exc})"
    if isinstance(exc, httpx.HTTPStatusError):
        return f"http status {exc.response.status_code}"
    if isinstance(exc, httpx.HTTPError):
        return f"transport error ({exc})"
    if isinstance(exc, OSError):
        return f"os error ({exc})"
    return str(exc) or type(exc).__name__


async def create_client(
    server_name: str,
    config: ServerConfig,
    *,
    session_factory: SessionFactory | None = None,
    connect_timeout: float | None = None,
) -> MCPClient:
    """Build and connect a client for one validated server config."""
    logger.debug("Creating %s client for %r", config.type, server_name)
    client = MCPClient(
        server_name,
        config,
        session_factory=session_factory or SDKSessionFactory(),
    )
    await client.connect(timeout=connect_timeout)
    return client
