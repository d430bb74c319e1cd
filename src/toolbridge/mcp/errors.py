"""Error taxonomy for MCP server orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

type ErrorCategory = Literal[
    "configuration",
    "invalid_payload",
    "connection",
    "tool_discovery",
    "execution",
]


class ToolBridgeError(RuntimeError):
    """Base failure with explicit category."""

    category: ErrorCategory = "connection"

    def __init__(self, message: str, *, server: str | None = None) -> None:
        super().__init__(message)
        self.server = server


class ConfigurationError(ToolBridgeError):
    """Raised when one server configuration is malformed or ambiguous."""

    category: ErrorCategory = "configuration"

    def __init__(self, server: str, field: str | None, message: str) -> None:
        super().__init__(f'Invalid configuration for server "{server}": {message}', server=server)
        self.field = field
        self.reason = message


class InvalidConfigPayloadError(ToolBridgeError):
    """Raised when the top-level configuration payload is structurally invalid."""

    category: ErrorCategory = "invalid_payload"


class ServerConnectionError(ToolBridgeError):
    """Raised when a transport to one server cannot be established."""

    category: ErrorCategory = "connection"


class ToolDiscoveryError(ToolBridgeError):
    """Raised when a connected server fails to list its tools."""

    category: ErrorCategory = "tool_discovery"


class ToolExecutionError(ToolBridgeError):
    """Raised when a tool call reports an error."""

    category: ErrorCategory = "execution"


@dataclass(frozen=True, slots=True)
class NameCollisionWarning:
    """Tool name registered by more than one server; the later one won."""

    tool_name: str
    previous_server: str
    winning_server: str

    @property
    def message(self) -> str:
        return (
            f'Tool conflict: "{self.tool_name}" from "{self.winning_server}" '
            f'overrides tool from "{self.previous_server}"'
        )
