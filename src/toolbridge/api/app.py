"""FastAPI app entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from toolbridge.api.deps import build_mcp_service
from toolbridge.api.routes.mcp import router as mcp_router
from toolbridge.logging_config import setup_logging
from toolbridge.mcp.service import MCPService
from toolbridge.settings import get_settings


def create_app(service: MCPService | None = None) -> FastAPI:
    settings = get_settings()
    mcp_service = service or build_mcp_service(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if settings.probe_interval_seconds is not None:
            mcp_service.start_probe_loop(settings.probe_interval_seconds)
        try:
            yield
        finally:
            await mcp_service.aclose()

    app = FastAPI(title="toolbridge API", version="0.1.0", lifespan=lifespan)
    app.state.mcp_service = mcp_service
    app.include_router(mcp_router)

    @app.get("/api/v1/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def run() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        "toolbridge.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
