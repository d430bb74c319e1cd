"""Tool descriptors exposed by connected MCP servers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from mcp import types

from toolbridge.mcp.errors import ToolExecutionError

type JSONValue = None | bool | int | float | str | list[JSONValue] | dict[str, JSONValue]
type JSONObject = dict[str, JSONValue]
type CoreMessage = dict[str, Any]


@dataclass(frozen=True, slots=True)
class ToolExecutionOptions:
    """Context handed to a tool's execute capability."""

    tool_call_id: str
    messages: list[CoreMessage] = field(default_factory=list)


type ToolExecute = Callable[[dict[str, Any], ToolExecutionOptions], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class Tool:
    """One named, schema-described capability of a tool server."""

    name: str
    description: str | None = None
    parameters: JSONObject = field(default_factory=dict)
    execute: ToolExecute | None = None

    def without_execute(self) -> Tool:
        """Copy safe to hand to the model-facing tool surface."""
        return replace(self, execute=None)


type ToolSet = dict[str, Tool]


class ToolCaller(Protocol):
    """Minimal MCP SDK session surface needed to run a tool."""

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> Any:
        """Call one tool on the server."""


def tool_from_descriptor(descriptor: types.Tool, caller: ToolCaller) -> Tool:
    """Build an executable tool from an MCP `Tool` descriptor."""
    name = descriptor.name

    async def execute(arguments: dict[str, Any], options: ToolExecutionOptions) -> Any:
        del options
        result = await caller.call_tool(name, dict(arguments))
        return tool_result_value(name, result)

    return Tool(
        name=name,
        description=descriptor.description,
        parameters=dict(descriptor.inputSchema),
        execute=execute,
    )


def tool_result_value(tool_name: str, result: types.CallToolResult) -> Any:
    """Reduce a `CallToolResult` to the value returned to the conversation."""
    if result.isError:
        text = _joined_text(result.content)
        msg = f'Tool "{tool_name}" reported an error: {text or "unknown error"}'
        raise ToolExecutionError(msg)

    content = result.content
    if content and all(isinstance(block, types.TextContent) for block in content):
        return _joined_text(content)

    if result.structuredContent is not None:
        return result.structuredContent
    return result.model_dump(mode="json", exclude_none=True)


def _joined_text(content: list[types.ContentBlock]) -> str:
    return "\n".join(block.text for block in content if isinstance(block, types.TextContent))
