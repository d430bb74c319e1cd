from __future__ import annotations

import httpx
import pytest
from mcp import types

from toolbridge.mcp.config import validate_server_config
from toolbridge.mcp.errors import ServerConnectionError, ToolDiscoveryError, ToolExecutionError
from toolbridge.mcp.tools import ToolExecutionOptions, tool_from_descriptor, tool_result_value
from toolbridge.mcp.transport import SDKSessionFactory, create_client, describe_failure
from tests.support.mcp_fakes import FakeServer, FakeSession, FakeSessionFactory, tool_descriptor


@pytest.mark.asyncio
async def test_client_lists_tools_and_executes_over_session() -> None:
    server = FakeServer(
        tools=[tool_descriptor("echo", "Echo text back")],
        handlers={"echo": lambda args: f"echo:{args['text']}"},
    )
    config = validate_server_config("echo", {"command": "echo-server"})
    client = await create_client(
        "echo",
        config,
        session_factory=FakeSessionFactory({"echo-server": server}),
    )

    tools = await client.tools()
    assert client.server_name == "echo"
    assert client.connected is True
    assert list(tools) == ["echo"]
    echo = tools["echo"]
    assert echo.description == "Echo text back"
    assert echo.parameters["type"] == "object"
    assert echo.execute is not None

    result = await echo.execute({"text": "hi"}, ToolExecutionOptions(tool_call_id="call-1"))
    assert result == "echo:hi"
    assert server.calls == [("echo", {"text": "hi"})]

    await client.close()
    assert server.opened == 1
    assert server.closed == 1
    assert client.connected is False


@pytest.mark.asyncio
async def test_close_is_idempotent() -> None:
    server = FakeServer()
    config = validate_server_config("s", {"command": "s"})
    client = await create_client("s", config, session_factory=FakeSessionFactory({"s": server}))
    await client.close()
    await client.close()
    assert server.closed == 1


@pytest.mark.asyncio
async def test_closed_client_can_connect_again() -> None:
    server = FakeServer(tools=[tool_descriptor("echo")])
    config = validate_server_config("s", {"command": "s"})
    client = await create_client("s", config, session_factory=FakeSessionFactory({"s": server}))
    await client.close()

    await client.connect(timeout=1.0)

    assert client.connected is True
    assert list(await client.tools()) == ["echo"]
    assert server.opened == 2
    assert server.closed == 1
    await client.close()
    assert server.closed == 2

@pytest.mark.asyncio
async def test_connect_failure_raises_server_connection_error() -> None:
    server = FakeServer(connect_error=httpx.ConnectError("connection refused"))
    config = validate_server_config("remote", {"type": "sse", "url": "http://remote.local/sse"})
    with pytest.raises(ServerConnectionError) as exc_info:
        await create_client(
            "remote",
            config,
            session_factory=FakeSessionFactory({"http://remote.local/sse": server}),
        )
    assert exc_info.value.server == "remote"
    assert exc_info.value.category == "connection"
    assert "transport error" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connect_deadline_aborts_hanging_handshake() -> None:
    server = FakeServer(initialize_delay=10.0)
    config = validate_server_config("slow", {"command": "slow"})
    with pytest.raises(ServerConnectionError, match="timed out"):
        await create_client(
            "slow",
            config,
            session_factory=FakeSessionFactory({"slow": server}),
            connect_timeout=0.05,
        )
    assert server.opened == 1
    assert server.closed == 1


@pytest.mark.asyncio
async def test_tool_listing_failure_raises_discovery_error() -> None:
    server = FakeServer(list_error=RuntimeError("boom"))
    config = validate_server_config("s", {"command": "s"})
    client = await create_client("s", config, session_factory=FakeSessionFactory({"s": server}))
    with pytest.raises(ToolDiscoveryError, match="boom"):
        await client.tools()
    await client.close()


@pytest.mark.asyncio
async def test_tools_after_close_raises_discovery_error() -> None:
    config = validate_server_config("s", {"command": "s"})
    client = await create_client(
        "s",
        config,
        session_factory=FakeSessionFactory({"s": FakeServer()}),
    )
    await client.close()
    with pytest.raises(ToolDiscoveryError):
        await client.tools()


def test_descriptor_input_schema_becomes_tool_parameters() -> None:
    schema = {
        "type": "object",
        "properties": {"path": {"type": "string"}},
        "required": ["path"],
    }
    descriptor = types.Tool(name="read_file", description="Read a file", inputSchema=schema)

    tool = tool_from_descriptor(descriptor, FakeSession(FakeServer()))

    assert tool.name == "read_file"
    assert tool.description == "Read a file"
    assert tool.parameters == schema


@pytest.mark.asyncio
async def test_error_result_from_server_raises_on_execute() -> None:
    server = FakeServer(tools=[tool_descriptor("fail")], error_tools={"fail"})
    tool = tool_from_descriptor(tool_descriptor("fail"), FakeSession(server))
    assert tool.execute is not None
    with pytest.raises(ToolExecutionError, match="reported an error"):
        await tool.execute({"text": "boom"}, ToolExecutionOptions(tool_call_id="c1"))

def test_tool_result_value_joins_text_blocks() -> None:
    result = types.CallToolResult(
        content=[
            types.TextContent(type="text", text="line one"),
            types.TextContent(type="text", text="line two"),
        ],
    )
    assert tool_result_value("t", result) == "line one\nline two"


def test_tool_result_value_prefers_structured_content_for_non_text() -> None:
    result = types.CallToolResult(
        content=[types.ImageContent(type="image", data="AAAA", mimeType="image/png")],
        structuredContent={"width": 1},
    )
    assert tool_result_value("t", result) == {"width": 1}


def test_tool_result_value_raises_on_error_result() -> None:
    result = types.CallToolResult(
        content=[types.TextContent(type="text", text="bad input")],
        isError=True,
    )
    with pytest.raises(ToolExecutionError, match="bad input"):
        tool_result_value("t", result)


def test_describe_failure_unwraps_single_exception_groups() -> None:
    request = httpx.Request("GET", "http://x.local/sse")
    response = httpx.Response(503, request=request)
    nested = ExceptionGroup(
        "outer",
        [ExceptionGroup("inner", [httpx.HTTPStatusError("x", request=request, response=response)])],
    )
    assert describe_failure(nested) == "http status 503"
    assert describe_failure(httpx.ReadTimeout("slow")).startswith("network timeout")
    assert describe_failure(RuntimeError()) == "RuntimeError"


def test_sdk_session_factory_dispatches_on_transport_tag() -> None:
    factory = SDKSessionFactory(request_timeout_seconds=1.0)
    for raw in (
        {"command": "run"},
        {"type": "sse", "url": "http://x.local/sse"},
        {"type": "streamable-http", "url": "http://x.local/mcp"},
    ):
        context = factory(validate_server_config("s", raw))
        assert hasattr(context, "__aenter__")
        assert hasattr(context, "__aexit__")
