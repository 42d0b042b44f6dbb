"""Typed parameter models for the database tools."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ConnectDatabaseParams(BaseModel):
    """Backend-specific keys (host, region, password, ...) pass through as extras."""

    model_config = ConfigDict(extra="allow")

    type: str | None = Field(
        default=None,
        description="Backend type: postgresql, mysql, dynamodb, redis (aliases accepted).",
    )
    name: str | None = Field(
        default=None,
        description="Connection name. Auto-generated as '{type}_{n}' when omitted.",
    )
    config: str | None = Field(
        default=None,
        description="Name of a saved connection configuration to start from.",
    )


class ExecuteQueryParams(BaseModel):
    connection: str = Field(description="Name of an open connection.")
    query: str | list[Any] = Field(
        validation_alias=AliasChoices("query", "sql", "statement"),
        description="SQL / PartiQL statement or Redis command.",
    )
    params: list[Any] = Field(
        default_factory=list,
        description="Positional parameters ($1 for PostgreSQL, %s for MySQL, ? for DynamoDB).",
    )


class ConnectionParams(BaseModel):
    connection: str = Field(description="Name of an open connection.")


class ImportConnectionsParams(BaseModel):
    connections: dict[str, dict[str, Any]] = Field(
        description="Exported configurations keyed by connection name."
    )
    overwrite: bool = False

