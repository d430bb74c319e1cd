"""MCP routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from toolbridge.api.deps import get_mcp_service
from toolbridge.api.schemas.mcp import (
    MCPServerResponse,
    MCPServersResponse,
    MCPServerToolResponse,
    MCPToolCollisionResponse,
    MCPToolResponse,
    MCPToolsResponse,
    ToolInvocationsRequest,
    ToolInvocationsResponse,
)
from toolbridge.mcp.config import config_summary
from toolbridge.mcp.errors import InvalidConfigPayloadError
from toolbridge.mcp.registry import ServerRecord
from toolbridge.mcp.service import MCPService
from toolbridge.mcp.stream import DataStreamBuffer

router = APIRouter(prefix="/api/v1/mcp", tags=["mcp"])


def _as_response(record: ServerRecord) -> MCPServerResponse:
    return MCPServerResponse(
        name=record.name,
        type=record.config.type if record.config is not None else None,
        target=config_summary(record.config) if record.config is not None else None,
        status=record.status,
        error=record.error,
        error_category=record.error_category,
        tools=(
            {
                name: MCPServerToolResponse(
                    description=tool.description,
                    parameters=dict(tool.parameters),
                )
                for name, tool in record.tools.items()
            }
            if record.tools is not None
            else None
        ),
        config=(
            record.config.model_dump(mode="json", exclude_none=True)
            if record.config is not None
            else record.raw_config
        ),
        checked_at=record.checked_at,
    )


def _as_servers_response(records: list[ServerRecord]) -> MCPServersResponse:
    return MCPServersResponse(items=[_as_response(record) for record in records])


@router.post("/config", response_model=MCPServersResponse)
async def update_mcp_config(
    payload: Any = Body(...),
    service: MCPService = Depends(get_mcp_service),
) -> MCPServersResponse:
    try:
        records = await service.update_config(payload)
    except InvalidConfigPayloadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _as_servers_response(list(records.values()))


@router.get("/check", response_model=MCPServersResponse)
async def check_mcp_servers(
    service: MCPService = Depends(get_mcp_service),
) -> MCPServersResponse:
    records = await service.check_servers_availabilities()
    return _as_servers_response(list(records.values()))


@router.get("/servers", response_model=MCPServersResponse)
async def list_mcp_servers(
    service: MCPService = Depends(get_mcp_service),
) -> MCPServersResponse:
    return _as_servers_response(service.list_servers())


@router.get("/servers/{name}", response_model=MCPServerResponse)
async def get_mcp_server(
    name: str,
    service: MCPService = Depends(get_mcp_service),
) -> MCPServerResponse:
    record = service.get(name)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")
    return _as_response(record)


@router.get("/tools", response_model=MCPToolsResponse)
async def list_mcp_tools(
    service: MCPService = Depends(get_mcp_service),
) -> MCPToolsResponse:
    namespace = service.namespace
    items: list[MCPToolResponse] = []
    for name, tool in namespace.tools_without_execute.items():
        items.append(
            MCPToolResponse(
                name=name,
                server=namespace.owner(name) or "",
                description=tool.description,
                parameters=dict(tool.parameters),
            )
        )
    return MCPToolsResponse(
        items=items,
        collisions=[
            MCPToolCollisionResponse(
                tool_name=warning.tool_name,
                previous_server=warning.previous_server,
                winning_server=warning.winning_server,
            )
            for warning in namespace.collisions
        ],
    )


@router.post("/tool-invocations", response_model=ToolInvocationsResponse)
async def process_tool_invocations(
    request: ToolInvocationsRequest,
    service: MCPService = Depends(get_mcp_service),
) -> ToolInvocationsResponse:
    stream = DataStreamBuffer()
    for tool_call in request.tool_calls:
        service.process_tool_call(tool_call, stream)
    messages = await service.process_tool_invocations(request.messages, stream)
    return ToolInvocationsResponse(messages=messages, stream=stream.parts)
