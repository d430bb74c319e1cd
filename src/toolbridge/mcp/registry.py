"""Per-server state and the aggregated global tool namespace."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Final

from toolbridge.mcp.config import ServerConfig
from toolbridge.mcp.errors import ErrorCategory, NameCollisionWarning
from toolbridge.mcp.tools import Tool, ToolSet
from toolbridge.mcp.transport import MCPClient

logger = logging.getLogger(__name__)

CONNECT_FAILURE_REASON: Final = "could not connect to server"
DISCOVERY_FAILURE_REASON: Final = "could not retrieve tools from server"


class ServerStatus(StrEnum):
    """Availability state for a configured MCP server."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class ServerRecord:
    """Result of the latest connect or probe attempt for one server.

    Records are replaced wholesale on every pass, never mutated.
    """

    name: str
    raw_config: Any
    config: ServerConfig | None
    status: ServerStatus
    client: MCPClient | None = None
    tools: ToolSet | None = None
    error: str | None = None
    error_category: ErrorCategory | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def available(self) -> bool:
        return self.status is ServerStatus.AVAILABLE

    @classmethod
    def ok(
        cls,
        name: str,
        raw_config: Any,
        config: ServerConfig,
        client: MCPClient,
        tools: ToolSet,
    ) -> ServerRecord:
        return cls(
            name=name,
            raw_config=raw_config,
            config=config,
            status=ServerStatus.AVAILABLE,
            client=client,
            tools=dict(tools),
        )

    @classmethod
    def failed(
        cls,
        name: str,
        raw_config: Any,
        *,
        error: str,
        category: ErrorCategory,
        config: ServerConfig | None = None,
        client: MCPClient | None = None,
    ) -> ServerRecord:
        return cls(
            name=name,
            raw_config=raw_config,
            config=config,
            status=ServerStatus.UNAVAILABLE,
            client=client,
            error=error,
            error_category=category,
        )


@dataclass(frozen=True, slots=True)
class NamespaceEntry:
    """One tool in the global namespace and the server that owns it."""

    tool: Tool
    server: str


class ToolNamespace:
    """Immutable global `toolName -> (Tool, owner)` snapshot."""

    __slots__ = ("_collisions", "_entries", "_stripped")

    def __init__(
        self,
        entries: Mapping[str, NamespaceEntry] | None = None,
        collisions: tuple[NameCollisionWarning, ...] = (),
    ) -> None:
        self._entries: Mapping[str, NamespaceEntry] = MappingProxyType(dict(entries or {}))
        self._stripped: Mapping[str, Tool] = MappingProxyType(
            {name: entry.tool.without_execute() for name, entry in self._entries.items()}
        )
        self._collisions = collisions

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, tool_name: str) -> NamespaceEntry | None:
        return self._entries.get(tool_name)

    def owner(self, tool_name: str) -> str | None:
        entry = self._entries.get(tool_name)
        return entry.server if entry is not None else None

    @property
    def tools(self) -> Mapping[str, Tool]:
        """Full view, including execute capabilities."""
        return MappingProxyType({name: entry.tool for name, entry in self._entries.items()})

    @property
    def tools_without_execute(self) -> Mapping[str, Tool]:
        """Stripped view safe to hand to the model-facing tool surface."""
        return self._stripped

    @property
    def collisions(self) -> tuple[NameCollisionWarning, ...]:
        return self._collisions


class NamespaceBuilder:
    """Stage a fresh namespace; later registrations win name collisions."""

    def __init__(self) -> None:
        self._entries: dict[str, NamespaceEntry] = {}
        self._collisions: list[NameCollisionWarning] = []

    def register(self, server_name: str, tools: Mapping[str, Tool]) -> None:
        for tool_name, tool in tools.items():
            existing = self._entries.get(tool_name)
            if existing is not None and existing.server != server_name:
                warning = NameCollisionWarning(
                    tool_name=tool_name,
                    previous_server=existing.server,
                    winning_server=server_name,
                )
                self._collisions.append(warning)
                logger.warning(warning.message)
            self._entries[tool_name] = NamespaceEntry(tool=tool, server=server_name)

    def build(self) -> ToolNamespace:
        return ToolNamespace(self._entries, tuple(self._collisions))


@dataclass(frozen=True, slots=True)
class RegistrySnapshot:
    """Records and the namespace derived from them, published together."""

    records: Mapping[str, ServerRecord]
    namespace: ToolNamespace
    published_at: datetime

    @classmethod
    def empty(cls) -> RegistrySnapshot:
        return cls(
            records=MappingProxyType({}),
            namespace=ToolNamespace(),
            published_at=datetime.now(UTC),
        )


class ClientRegistry:
    """Authoritative `serverName -> ServerRecord` store.

    Writers publish complete snapshots; readers always see either the prior
    snapshot or the new one.
    """

    def __init__(self) -> None:
        self._snapshot = RegistrySnapshot.empty()

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    @property
    def namespace(self) -> ToolNamespace:
        return self._snapshot.namespace

    @property
    def records(self) -> Mapping[str, ServerRecord]:
        return self._snapshot.records

    def get(self, name: str) -> ServerRecord | None:
        return self._snapshot.records.get(name)

    def list_records(self) -> list[ServerRecord]:
        """Records in configuration order."""
        return list(self._snapshot.records.values())

    def held_clients(self) -> dict[str, MCPClient]:
        return {
            name: record.client
            for name, record in self._snapshot.records.items()
            if record.client is not None
        }

    def publish(self, records: Mapping[str, ServerRecord]) -> RegistrySnapshot:
        """Aggregate available servers in record order and swap the snapshot in."""
        builder = NamespaceBuilder()
        for record in records.values():
            if record.available and record.tools:
                builder.register(record.name, record.tools)
        snapshot = RegistrySnapshot(
            records=MappingProxyType(dict(records)),
            namespace=builder.build(),
            published_at=datetime.now(UTC),
        )
        self._snapshot = snapshot
        return snapshot

    def clear(self) -> None:
        self._snapshot = RegistrySnapshot.empty()
