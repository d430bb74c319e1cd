"""MCP server configuration models and validation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError

from toolbridge.mcp.errors import ConfigurationError, InvalidConfigPayloadError

type ServerType = Literal["stdio", "sse", "streamable-http"]

SERVER_TYPES: Final[tuple[str, ...]] = ("stdio", "sse", "streamable-http")
NETWORK_SERVER_TYPES: Final[tuple[str, ...]] = ("sse", "streamable-http")


class StdioServerConfig(BaseModel):
    """Local server spawned as a subprocess and reached over its standard streams."""

    type: Literal["stdio"] = "stdio"
    command: str = Field(min_length=1)
    args: list[str] | None = None
    cwd: str | None = None
    env: dict[str, str] | None = None


class SSEServerConfig(BaseModel):
    """Remote server reached over a Server-Sent-Events stream."""

    type: Literal["sse"] = "sse"
    url: HttpUrl
    headers: dict[str, str] | None = None


class StreamableHTTPServerConfig(BaseModel):
    """Remote server reached over a streamable HTTP session."""

    type: Literal["streamable-http"] = "streamable-http"
    url: HttpUrl
    headers: dict[str, str] | None = None


type ServerConfig = Annotated[
    StdioServerConfig | SSEServerConfig | StreamableHTTPServerConfig,
    Field(discriminator="type"),
]

_SERVER_CONFIG_ADAPTER: Final[TypeAdapter[ServerConfig]] = TypeAdapter(ServerConfig)


class MCPConfig(BaseModel):
    """Full server set; `mcpServers` insertion order is the aggregation order."""

    model_config = ConfigDict(populate_by_name=True)

    mcp_servers: dict[str, Any] = Field(default_factory=dict, alias="mcpServers")


def validate_server_config(server_name: str, raw: Any) -> ServerConfig:
    """Normalize one raw server config into its tagged transport variant."""
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(mode="json", exclude_none=True)
    if not isinstance(raw, Mapping):
        raise ConfigurationError(server_name, None, "server configuration must be an object.")

    data = dict(raw)
    has_command = data.get("command") is not None
    has_url = data.get("url") is not None

    if has_command and has_url:
        raise ConfigurationError(
            server_name,
            "command",
            'cannot have "command" and "url" defined for the same server.',
        )

    server_type = data.get("type")
    if server_type is None and has_command:
        server_type = "stdio"
        data["type"] = server_type

    if has_url and server_type is None:
        raise ConfigurationError(
            server_name,
            "type",
            'missing "type" field, only "sse" and "streamable-http" are valid options.',
        )

    if server_type not in SERVER_TYPES:
        raise ConfigurationError(
            server_name,
            "type",
            'provided "type" is invalid, only "stdio", "sse" or "streamable-http" '
            "are valid options.",
        )

    if server_type == "stdio" and not has_command:
        raise ConfigurationError(server_name, "command", 'missing "command" field.')
    if server_type in NETWORK_SERVER_TYPES and not has_url:
        raise ConfigurationError(server_name, "url", 'missing "url" field.')

    try:
        return _SERVER_CONFIG_ADAPTER.validate_python(data)
    except ValidationError as exc:
        problems: list[tuple[str, str]] = []
        for error in exc.errors():
            path = ".".join(str(part) for part in error["loc"] if part != server_type)
            problems.append((path, error["msg"]))
        first_field = problems[0][0] if problems else None
        message = "; ".join(f"{path}: {msg}" for path, msg in problems)
        raise ConfigurationError(server_name, first_field or None, message) from exc


def parse_mcp_config(payload: Any) -> MCPConfig:
    """Check the top-level configuration shape; server entries are validated later."""
    if isinstance(payload, MCPConfig):
        return payload
    if not isinstance(payload, Mapping):
        msg = "Invalid MCP servers configuration"
        raise InvalidConfigPayloadError(msg)
    servers = payload.get("mcpServers", payload.get("mcp_servers", {}))
    if not isinstance(servers, Mapping):
        msg = 'Invalid MCP servers configuration: "mcpServers" must be an object'
        raise InvalidConfigPayloadError(msg)
    if not all(isinstance(name, str) for name in servers):
        msg = "Invalid MCP servers configuration: server names must be strings"
        raise InvalidConfigPayloadError(msg)
    return MCPConfig(mcp_servers=dict(servers))


def config_summary(config: ServerConfig) -> str:
    """Short human-readable target for one server (command line or URL)."""
    match config:
        case StdioServerConfig(command=command, args=args):
            return " ".join([command, *(args or [])])
        case SSEServerConfig(url=url) | StreamableHTTPServerConfig(url=url):
            return str(url)
