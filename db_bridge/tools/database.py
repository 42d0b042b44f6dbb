"""Database tools — translate agent tool calls into ConnectionManager calls.

Tools:
    connect_database        open a named connection (explicit params or saved config)
    execute_query           run a statement / command on a connection
    list_connections        snapshot of open connections
    test_connection         health-check one connection
    close_connection        close one connection
    close_all_connections   close everything, with a per-connection report
    connection_info         metadata and redacted locator of one connection
    get_schema              structural description of one connection
    export_connections      non-secret configuration of every connection
    import_connections      validate exported configurations (never connects)
    list_saved_configs      names of saved connection configurations
    list_supported_types    backend types, aliases and required fields
"""

from __future__ import annotations

from typing import Any

from db_bridge import __version__
from db_bridge.config import ConfigResolver
from db_bridge.exceptions import NotFoundError
from db_bridge.logging import bind_tool_context, get_logger
from db_bridge.manager import ConnectionManager
from db_bridge.tools.base import BaseToolset
from db_bridge.tools.manifest import ParamSpec, ToolManifest, ToolSpec
from db_bridge.tools.params import (
    ConnectDatabaseParams,
    ConnectionParams,
    ExecuteQueryParams,
    ImportConnectionsParams,
)

log = get_logger(__name__)

_CONNECTION_PARAM = ParamSpec(
    name="connection",
    type="string",
    description="Name of an open connection.",
    example="postgresql_1",
)


class DatabaseTools(BaseToolset):
    """Agent-facing tool surface over a :class:`ConnectionManager`."""

    TOOLSET_ID = "database"
    VERSION = __version__

    def __init__(
        self,
        manager: ConnectionManager,
        resolver: ConfigResolver | None = None,
    ) -> None:
        self._manager = manager
        self._resolver = resolver

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def resolver(self) -> ConfigResolver | None:
        return self._resolver

    async def cleanup(self) -> dict[str, Any]:
        """Close every connection.  Called on shutdown."""
        report = await self._manager.disconnect_all()
        log.info(
            "connections_cleaned_up",
            disconnected=report["disconnected"],
            failed=report["failed"],
        )
        return report

    # ------------------------------------------------------------------
    # Tools: lifecycle
    # ------------------------------------------------------------------

    async def _tool_connect_database(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ConnectDatabaseParams.model_validate(params)
        explicit = p.model_dump(exclude_none=True)
        saved_name = explicit.pop("config", None)

        merged: dict[str, Any] = {}
        if saved_name is not None:
            saved = self._resolver.lookup(saved_name) if self._resolver else None
            if saved is None:
                raise NotFoundError(saved_name, kind="Saved configuration")
            merged.update(saved)
            merged.setdefault("name", saved_name)
        merged.update(explicit)

        bind_tool_context(connection=merged.get("name"))
        connection = await self._manager.connect(merged)
        return {
            "connection": connection,
            "message": (
                f"Successfully connected to {connection['type']} database "
                f"as '{connection['name']}'"
            ),
        }

    async def _tool_close_connection(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ConnectionParams.model_validate(params)
        bind_tool_context(connection=p.connection)
        return await self._manager.disconnect(p.connection)

    async def _tool_close_all_connections(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self._manager.disconnect_all()

    # ------------------------------------------------------------------
    # Tools: operations
    # ------------------------------------------------------------------

    async def _tool_execute_query(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ExecuteQueryParams.model_validate(params)
        bind_tool_context(connection=p.connection)
        result = await self._manager.execute_query(p.connection, p.query, p.params)
        return {"connection": p.connection, "query": p.query, "data": result.to_dict()}

    async def _tool_test_connection(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ConnectionParams.model_validate(params)
        return await self._manager.test_connection(p.connection)

    async def _tool_get_schema(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ConnectionParams.model_validate(params)
        bind_tool_context(connection=p.connection)
        return await self._manager.get_schema(p.connection)

    # ------------------------------------------------------------------
    # Tools: views
    # ------------------------------------------------------------------

    async def _tool_list_connections(self, params: dict[str, Any]) -> dict[str, Any]:
        connections = self._manager.list_connections()
        return {"connections": connections, "count": len(connections)}

    async def _tool_connection_info(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ConnectionParams.model_validate(params)
        return self._manager.get_connection_info(p.connection)

    async def _tool_export_connections(self, params: dict[str, Any]) -> dict[str, Any]:
        exported = self._manager.export_connections()
        return {"connections": exported, "count": len(exported)}

    async def _tool_import_connections(self, params: dict[str, Any]) -> dict[str, Any]:
        p = ImportConnectionsParams.model_validate(params)
        results = await self._manager.import_connections(p.connections, overwrite=p.overwrite)
        return {
            "results": results,
            "validated": sum(1 for r in results if r["status"] == "validated"),
            "failed": sum(1 for r in results if r["status"] == "failed"),
            "skipped": sum(1 for r in results if r["status"] == "skipped"),
        }

    async def _tool_list_saved_configs(self, params: dict[str, Any]) -> dict[str, Any]:
        names = self._resolver.list_names() if self._resolver else []
        return {"configs": names, "count": len(names)}

    async def _tool_list_supported_types(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"types": self._manager.supported_types()}

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def get_manifest(self) -> ToolManifest:
        return ToolManifest(
            toolset_id=self.TOOLSET_ID,
            version=self.VERSION,
            description=(
                "Open, query, introspect and close named connections to "
                "PostgreSQL, MySQL, DynamoDB and Redis."
            ),
            tags=["database", "sql", "nosql"],
            tools=[
                ToolSpec(
                    name="connect_database",
                    description=(
                        "Open a named database connection. Pass backend parameters "
                        "directly (host, port, database, user, password for SQL; "
                        "region, access_key_id, secret_access_key for DynamoDB; "
                        "host, port, password, db for Redis) or name a saved config."
                    ),
                    params=[
                        ParamSpec("type", "string", "Backend type.", required=False,
                                  enum=["postgresql", "mysql", "dynamodb", "redis"]),
                        ParamSpec("name", "string", "Connection name.", required=False),
                        ParamSpec("config", "string", "Saved configuration name.",
                                  required=False, example="default"),
                        ParamSpec("host", "string", "Server host.", required=False),
                        ParamSpec("port", "integer", "Server port.", required=False),
                        ParamSpec("database", "string", "Database name.", required=False),
                        ParamSpec("user", "string", "Username.", required=False),
                        ParamSpec("password", "string", "Password.", required=False),
                    ],
                    additional_params=True,
                    examples=[{
                        "type": "postgresql", "name": "analytics", "host": "localhost",
                        "database": "analytics", "user": "reader", "password": "secret",
                    }],
                ),
                ToolSpec(
                    name="execute_query",
                    description="Execute a statement on an open connection.",
                    params=[
                        _CONNECTION_PARAM,
                        ParamSpec("query", ["string", "array"],
                                  "SQL / PartiQL statement or Redis command.",
                                  example="SELECT * FROM users WHERE id = $1"),
                        ParamSpec("params", "array", "Positional parameters.",
                                  required=False),
                    ],
                    returns_description="rows, row_count and backend-specific extras.",
                ),
                ToolSpec(
                    name="list_connections",
                    description="List all open connections.",
                    returns="array",
                ),
                ToolSpec(
                    name="test_connection",
                    description="Check whether a connection is healthy.",
                    params=[_CONNECTION_PARAM],
                ),
                ToolSpec(
                    name="close_connection",
                    description="Close a connection and free its name.",
                    params=[_CONNECTION_PARAM],
                ),
                ToolSpec(
                    name="close_all_connections",
                    description="Close every open connection.",
                ),
                ToolSpec(
                    name="connection_info",
                    description="Show connection metadata (secrets redacted).",
                    params=[_CONNECTION_PARAM],
                ),
                ToolSpec(
                    name="get_schema",
                    description=(
                        "Describe the structure behind a connection: tables and "
                        "columns, DynamoDB keys and indexes, or Redis key patterns."
                    ),
                    params=[_CONNECTION_PARAM],
                ),
                ToolSpec(
                    name="export_connections",
                    description="Export non-secret configuration of every connection.",
                ),
                ToolSpec(
                    name="import_connections",
                    description=(
                        "Validate exported configurations. Nothing is connected; "
                        "credentials must be supplied through connect_database."
                    ),
                    params=[
                        ParamSpec("connections", "object",
                                  "Configurations keyed by connection name."),
                        ParamSpec("overwrite", "boolean",
                                  "Close existing connections with the same name.",
                                  required=False, default=False),
                    ],
                ),
                ToolSpec(
                    name="list_saved_configs",
                    description="List saved connection configuration names.",
                ),
                ToolSpec(
                    name="list_supported_types",
                    description="List supported backend types and their aliases.",
                ),
            ],
        )
