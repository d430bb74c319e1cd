"""MCP service: connect configured servers, probe them, and gate tool calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Mapping, Sequence
from typing import Any

from toolbridge.mcp.config import MCPConfig, ServerConfig, parse_mcp_config, validate_server_config
from toolbridge.mcp.errors import ConfigurationError, NameCollisionWarning
from toolbridge.mcp.invocations import ToolInvocationInterceptor
from toolbridge.mcp.registry import (
    CONNECT_FAILURE_REASON,
    DISCOVERY_FAILURE_REASON,
    ClientRegistry,
    ServerRecord,
    ToolNamespace,
)
from toolbridge.mcp.stream import DataStreamWriter
from toolbridge.mcp.tools import Tool
from toolbridge.mcp.transport import MCPClient, SDKSessionFactory, SessionFactory, create_client
from toolbridge.models.messages import Message, ToolCall

logger = logging.getLogger(__name__)


class MCPService:
    """Own the connected MCP servers and the tool namespace built from them.

    Config updates and probe passes are the only writers and run one at a
    time; the invocation path only reads the published snapshot.
    """

    def __init__(
        self,
        *,
        session_factory: SessionFactory | None = None,
        registry: ClientRegistry | None = None,
        connect_timeout_seconds: float | None = 10.0,
        close_timeout_seconds: float | None = 5.0,
        execute_timeout_seconds: float | None = 60.0,
        max_announced_tool_calls: int = 500,
    ) -> None:
        self._registry = registry or ClientRegistry()
        self._session_factory = session_factory or SDKSessionFactory()
        self._connect_timeout_seconds = connect_timeout_seconds
        self._close_timeout_seconds = close_timeout_seconds
        self._config = MCPConfig()
        self._write_lock = asyncio.Lock()
        self._probe_task: asyncio.Task[None] | None = None
        self._interceptor = ToolInvocationInterceptor(
            self._registry,
            execute_timeout_seconds=execute_timeout_seconds,
            max_announced_tool_calls=max_announced_tool_calls,
        )

    @property
    def config(self) -> MCPConfig:
        return self._config

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    @property
    def namespace(self) -> ToolNamespace:
        return self._registry.namespace

    @property
    def tools(self) -> Mapping[str, Tool]:
        return self._registry.namespace.tools

    @property
    def tools_without_execute(self) -> Mapping[str, Tool]:
        return self._registry.namespace.tools_without_execute

    @property
    def collisions(self) -> tuple[NameCollisionWarning, ...]:
        return self._registry.namespace.collisions

    def get(self, name: str) -> ServerRecord | None:
        return self._registry.get(name)

    def list_servers(self) -> list[ServerRecord]:
        return self._registry.list_records()

    def is_valid_tool_name(self, tool_name: str) -> bool:
        return tool_name in self._registry.namespace

    async def update_config(
        self,
        config: MCPConfig | Mapping[str, Any],
    ) -> Mapping[str, ServerRecord]:
        """Replace the whole server set and rebuild every client from scratch."""
        parsed = parse_mcp_config(config)
        logger.debug("updating config: %s", list(parsed.mcp_servers))
        async with self._write_lock:
            # Readers keep the previous snapshot until the rebuilt one is published.
            await self._close_clients(self._registry.held_clients())
            self._config = parsed
            servers = list(parsed.mcp_servers.items())
            records = await self._settle(
                [name for name, _ in servers],
                [raw for _, raw in servers],
                [self._connect_server(name, raw) for name, raw in servers],
            )
            snapshot = self._registry.publish(records)
        return snapshot.records

    async def check_servers_availabilities(self) -> Mapping[str, ServerRecord]:
        """Re-validate all registered servers, reusing live clients where possible."""
        async with self._write_lock:
            current = self._registry.list_records()
            records = await self._settle(
                [record.name for record in current],
                [record.raw_config for record in current],
                [self._probe_server(record) for record in current],
            )
            snapshot = self._registry.publish(records)
        return snapshot.records

    def start_probe_loop(self, interval_seconds: float) -> asyncio.Task[None]:
        """Run availability checks every `interval_seconds` in the background."""
        if self._probe_task is not None and not self._probe_task.done():
            return self._probe_task
        self._probe_task = asyncio.create_task(
            self._probe_loop(interval_seconds),
            name="mcp-availability-probe",
        )
        return self._probe_task

    async def stop_probe_loop(self) -> None:
        task, self._probe_task = self._probe_task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop probing and close every held client."""
        await self.stop_probe_loop()
        async with self._write_lock:
            await self._close_clients(self._registry.held_clients())
            self._registry.clear()

    def process_tool_call(self, tool_call: ToolCall, stream: DataStreamWriter) -> bool:
        return self._interceptor.process_tool_call(tool_call, stream)

    async def process_tool_invocations(
        self,
        messages: Sequence[Message],
        stream: DataStreamWriter,
    ) -> list[Message]:
        return await self._interceptor.process_tool_invocations(messages, stream)

    async def _probe_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.check_servers_availabilities()
            except Exception:
                logger.exception("Periodic MCP availability check failed")

    async def _settle(
        self,
        names: list[str],
        raw_configs: list[Any],
        attempts: list[Coroutine[Any, Any, ServerRecord]],
    ) -> dict[str, ServerRecord]:
        """Wait for every per-server attempt; failures become unavailable records."""
        results = await asyncio.gather(*attempts, return_exceptions=True)
        records: dict[str, ServerRecord] = {}
        for name, raw, result in zip(names, raw_configs, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Unexpected failure while checking server %r: %r", name, result)
                records[name] = ServerRecord.failed(
                    name,
                    raw,
                    error=CONNECT_FAILURE_REASON,
                    category="connection",
                )
            else:
                records[name] = result
        return records

    async def _connect_server(self, name: str, raw_config: Any) -> ServerRecord:
        try:
            config = validate_server_config(name, raw_config)
        except ConfigurationError as exc:
            logger.error("Failed to initialize MCP client for server %r: %s", name, exc)
            return ServerRecord.failed(name, raw_config, error=str(exc), category=exc.category)
        return await self._check_server(name, raw_config, config, client=None)

    async def _probe_server(self, record: ServerRecord) -> ServerRecord:
        logger.debug("Checking MCP server %r availability: start", record.name)
        if record.config is None:
            return await self._connect_server(record.name, record.raw_config)
        client = record.client
        if client is not None and not client.connected:
            await self._close_client(record.name, client)
            client = None
        checked = await self._check_server(record.name, record.raw_config, record.config, client)
        logger.debug("Checking MCP server %r availability: end", record.name)
        return checked

    async def _check_server(
        self,
        name: str,
        raw_config: Any,
        config: ServerConfig,
        client: MCPClient | None,
    ) -> ServerRecord:
        if client is None:
            try:
                client = await create_client(
                    name,
                    config,
                    session_factory=self._session_factory,
                    connect_timeout=self._connect_timeout_seconds,
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to connect to server %r: %s", name, exc)
                return ServerRecord.failed(
                    name,
                    raw_config,
                    config=config,
                    error=CONNECT_FAILURE_REASON,
                    category="connection",
                )

        try:
            tools = await client.tools()
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to get tools from server %r: %s", name, exc)
            return ServerRecord.failed(
                name,
                raw_config,
                config=config,
                client=client,
                error=DISCOVERY_FAILURE_REASON,
                category="tool_discovery",
            )
        return ServerRecord.ok(name, raw_config, config, client, tools)

    async def _close_clients(self, clients: Mapping[str, MCPClient]) -> None:
        await asyncio.gather(
            *(self._close_client(name, client) for name, client in clients.items())
        )

    async def _close_client(self, name: str, client: MCPClient) -> None:
        logger.debug("Closing client for server %r", name)
        try:
            await asyncio.wait_for(client.close(), self._close_timeout_seconds)
        except TimeoutError:
            logger.error(
                "Timed out closing client for %r after %ss",
                name,
                self._close_timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Error closing client for %r: %s", name, exc)
