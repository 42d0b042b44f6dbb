"""API layer — Request / response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    uptime_seconds: float
    connections: int = Field(description="Number of open connections.")
    supported_types: list[str]


class ToolSummary(BaseModel):
    name: str
    description: str
    params_schema: dict[str, Any]


class ToolCallResponse(BaseModel):
    success: bool
    output: Any | None = None
    error: str | None = None
    code: str | None = None


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: Any | None = None
    request_id: str | None = None
