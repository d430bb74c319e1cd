"""Runtime settings read from `TOOLBRIDGE_*` environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Timeouts and scheduling for the MCP service."""

    model_config = SettingsConfigDict(env_prefix="TOOLBRIDGE_", extra="ignore")

    connect_timeout_seconds: float | None = Field(default=10.0, gt=0)
    close_timeout_seconds: float | None = Field(default=5.0, gt=0)
    execute_timeout_seconds: float | None = Field(default=60.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    probe_interval_seconds: float | None = Field(default=None, gt=0)
    max_announced_tool_calls: int = Field(default=500, ge=1)
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
