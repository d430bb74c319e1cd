"""Human-approval gate for tool calls embedded in the conversation."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Sequence
from enum import StrEnum
from typing import Any, Final

from toolbridge.mcp.registry import ClientRegistry, NamespaceEntry, ToolNamespace
from toolbridge.mcp.stream import DataStreamWriter, format_data_stream_part
from toolbridge.mcp.tools import CoreMessage, ToolExecutionOptions
from toolbridge.models.messages import (
    Message,
    MessagePart,
    ToolCall,
    ToolInvocation,
    ToolInvocationPart,
    convert_to_core_messages,
)

logger = logging.getLogger(__name__)


class ToolApproval(StrEnum):
    """Decision sentinels the user attaches to a proposed tool call."""

    APPROVE = "Yes, approved."
    REJECT = "No, rejected."


TOOL_EXECUTION_DENIED: Final = "Error: User denied access to tool execution"
TOOL_EXECUTION_ERROR: Final = "Error: An error occured while calling tool"
TOOL_EXECUTION_TIMEOUT: Final = "Error: Tool execution timed out"
TOOL_NO_EXECUTE_FUNCTION: Final = "Error: No execute function found on tool"
NO_DESCRIPTION: Final = "No description available"

RESOLUTION_SENTINELS: Final[frozenset[str]] = frozenset(
    {
        TOOL_EXECUTION_DENIED,
        TOOL_EXECUTION_ERROR,
        TOOL_EXECUTION_TIMEOUT,
        TOOL_NO_EXECUTE_FUNCTION,
    }
)


def decision_of(result: Any) -> ToolApproval | None:
    """Return the pending decision carried by a part's result, if any."""
    if isinstance(result, str):
        try:
            return ToolApproval(result)
        except ValueError:
            return None
    return None


class ToolInvocationInterceptor:
    """Resolve approved and denied tool calls found in the latest message."""

    def __init__(
        self,
        registry: ClientRegistry,
        *,
        execute_timeout_seconds: float | None = 60.0,
        max_announced_tool_calls: int = 500,
    ) -> None:
        self._registry = registry
        self._execute_timeout_seconds = execute_timeout_seconds
        self._announced: deque[str] = deque(maxlen=max(1, max_announced_tool_calls))

    def process_tool_call(self, tool_call: ToolCall, stream: DataStreamWriter) -> bool:
        """Announce a newly proposed call once; returns whether anything was written."""
        entry = self._registry.namespace.get(tool_call.tool_name)
        if entry is None or tool_call.tool_call_id in self._announced:
            return False
        stream.write_message_annotation(
            {
                "type": "toolCall",
                "toolCallId": tool_call.tool_call_id,
                "serverName": entry.server,
                "toolName": tool_call.tool_name,
                "toolDescription": entry.tool.description or NO_DESCRIPTION,
            }
        )
        self._announced.append(tool_call.tool_call_id)
        return True

    async def process_tool_invocations(
        self,
        messages: Sequence[Message],
        stream: DataStreamWriter,
    ) -> list[Message]:
        """Resolve pending decisions in the last message; earlier messages pass through."""
        if not messages:
            return []
        last_message = messages[-1]
        if not last_message.parts:
            return list(messages)

        # One namespace snapshot for the whole request.
        namespace = self._registry.namespace
        core_messages = convert_to_core_messages(list(messages))
        processed = await asyncio.gather(
            *(
                self._process_part(part, namespace, core_messages, stream)
                for part in last_message.parts
            )
        )
        return [*messages[:-1], last_message.model_copy(update={"parts": list(processed)})]

    async def _process_part(
        self,
        part: MessagePart,
        namespace: ToolNamespace,
        core_messages: list[CoreMessage],
        stream: DataStreamWriter,
    ) -> MessagePart:
        if not isinstance(part, ToolInvocationPart):
            return part

        invocation = part.tool_invocation
        entry = namespace.get(invocation.tool_name)
        decision = decision_of(invocation.result)
        if entry is None or decision is None:
            return part

        if decision is ToolApproval.APPROVE:
            result = await self._execute(entry, invocation, core_messages)
        else:
            result = TOOL_EXECUTION_DENIED

        stream.write(
            format_data_stream_part(
                "tool_result",
                {"toolCallId": invocation.tool_call_id, "result": result},
            )
        )
        resolved = invocation.model_copy(update={"state": "result", "result": result})
        return part.model_copy(update={"tool_invocation": resolved})

    async def _execute(
        self,
        entry: NamespaceEntry,
        invocation: ToolInvocation,
        core_messages: list[CoreMessage],
    ) -> Any:
        execute = entry.tool.execute
        if execute is None:
            return TOOL_NO_EXECUTE_FUNCTION

        logger.debug("calling tool %r with args: %s", invocation.tool_name, invocation.args)
        options = ToolExecutionOptions(
            tool_call_id=invocation.tool_call_id,
            messages=core_messages,
        )
        deadline = asyncio.timeout(self._execute_timeout_seconds)
        try:
            async with deadline:
                return await execute(dict(invocation.args), options)
        except Exception:
            if deadline.expired():
                logger.error(
                    "tool %r on server %r timed out after %ss",
                    invocation.tool_name,
                    entry.server,
                    self._execute_timeout_seconds,
                )
                return TOOL_EXECUTION_TIMEOUT
            logger.exception(
                "error while calling tool %r on server %r",
                invocation.tool_name,
                entry.server,
            )
            return TOOL_EXECUTION_ERROR
