"""Shared API dependency providers."""

from __future__ import annotations

from fastapi import Request

from toolbridge.mcp.service import MCPService
from toolbridge.mcp.transport import SDKSessionFactory
from toolbridge.settings import Settings, get_settings


def build_mcp_service(settings: Settings | None = None) -> MCPService:
    settings = settings or get_settings()
    return MCPService(
        session_factory=SDKSessionFactory(
            request_timeout_seconds=settings.request_timeout_seconds,
        ),
        connect_timeout_seconds=settings.connect_timeout_seconds,
        close_timeout_seconds=settings.close_timeout_seconds,
        execute_timeout_seconds=settings.execute_timeout_seconds,
        max_announced_tool_calls=settings.max_announced_tool_calls,
    )


def get_mcp_service(request: Request) -> MCPService:
    return request.app.state.mcp_service
