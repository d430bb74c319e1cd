from __future__ import annotations

import sys
from pathlib import Path

import pytest

from toolbridge.mcp.invocations import ToolApproval
from toolbridge.mcp.registry import ServerStatus
from toolbridge.mcp.service import MCPService
from toolbridge.mcp.stream import DataStreamBuffer
from toolbridge.models.messages import Message, ToolCall

ECHO_SERVER = Path(__file__).resolve().parents[1] / "support" / "echo_server.py"


@pytest.mark.asyncio
async def test_stdio_server_round_trip_alongside_unreachable_sse_server() -> None:
    service = MCPService(connect_timeout_seconds=20.0, close_timeout_seconds=5.0)
    try:
        records = await service.update_config(
            {
                "mcpServers": {
                    "echo": {"command": sys.executable, "args": [str(ECHO_SERVER)]},
                    "nowhere": {"type": "sse", "url": "http://127.0.0.1:9/sse"},
                }
            }
        )
        assert records["echo"].status is ServerStatus.AVAILABLE
        assert records["nowhere"].status is ServerStatus.UNAVAILABLE
        assert records["nowhere"].error == "could not connect to server"

        records = await service.check_servers_availabilities()
        assert records["echo"].status is ServerStatus.AVAILABLE
        assert list(service.tools) == ["echo"]
        assert service.tools_without_execute["echo"].execute is None

        stream = DataStreamBuffer()
        announced = service.process_tool_call(
            ToolCall(tool_call_id="call-echo", tool_name="echo", args={"text": "hi"}),
            stream,
        )
        assert announced is True

        messages = [
            Message(role="user", content="say hi"),
            Message.model_validate(
                {
                    "role": "assistant",
                    "parts": [
                        {
                            "type": "tool-invocation",
                            "toolInvocation": {
                                "state": "call",
                                "toolCallId": "call-echo",
                                "toolName": "echo",
                                "args": {"text": "hi"},
                                "result": ToolApproval.APPROVE.value,
                            },
                        }
                    ],
                }
            ),
        ]
        updated = await service.process_tool_invocations(messages, stream)

        assert updated[-1].tool_invocations()[0].result == "hi"
        assert stream.annotations()[0]["serverName"] == "echo"
        assert stream.tool_results() == [{"toolCallId": "call-echo", "result": "hi"}]
    finally:
        await service.aclose()
    assert service.list_servers() == []
