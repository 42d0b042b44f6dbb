"""Drivers — PostgreSQL (asyncpg connection pool).

Statements use PostgreSQL's positional ``$1, $2, ...`` placeholders.
Row-returning statements yield one dict per record; other statements yield
an empty row list and the affected-row count from the command tag.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from db_bridge.drivers.base import REDACTED, BaseDriver, QueryResult

_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1 AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

_COLUMNS_SQL = """
    SELECT table_name, column_name, data_type, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = $1
    ORDER BY table_name, ordinal_position
"""


def _parse_status(status: str | None) -> tuple[str, int | None]:
    """Split a command tag such as ``"INSERT 0 3"`` into (command, count)."""
    if not status:
        return "", None
    parts = status.split()
    command = parts[0]
    if len(parts) > 1 and parts[-1].isdigit():
        return command, int(parts[-1])
    return command, None


class PostgreSQLDriver(BaseDriver):
    BACKEND_TYPE = "postgresql"
    DISPLAY_NAME = "PostgreSQL"
    DEFAULT_PORT = 5432
    REQUIRED_FIELDS = ("host", "database", "user", "password")

    def _ssl(self) -> Any:
        ssl = self.parameters.get("ssl")
        if ssl is True:
            return "require"
        return ssl

    async def _open(self) -> Any:
        p = self.parameters
        kwargs: dict[str, Any] = {
            "host": p["host"],
            "port": int(p.get("port") or self.DEFAULT_PORT),
            "database": p["database"],
            "user": p["user"],
            "password": p["password"],
            "min_size": 1,
            "max_size": int(self._setting("max_connections")),
            "max_inactive_connection_lifetime": float(self._setting("idle_timeout")),
            "timeout": float(self._setting("connection_timeout")),
            "command_timeout": self._setting("query_timeout"),
        }
        ssl = self._ssl()
        if ssl is not None:
            kwargs["ssl"] = ssl
        return await asyncpg.create_pool(**kwargs)

    async def _ping(self, client: Any) -> None:
        await client.fetchval("SELECT 1")

    async def _close(self, client: Any) -> None:
        await client.close()

    async def _execute(
        self, client: Any, statement: str, params: list[Any]
    ) -> QueryResult:
        async with client.acquire() as conn:
            prepared = await conn.prepare(statement)
            records = await prepared.fetch(*params)
            status = prepared.get_statusmsg()
            fields = [attr.name for attr in prepared.get_attributes()]

        rows = [dict(record) for record in records]
        command, count = _parse_status(status)
        return QueryResult(
            rows=rows,
            row_count=count if count is not None else len(rows),
            extras={"command": command, "fields": fields},
        )

    async def _introspect(self, client: Any) -> dict[str, Any]:
        schema = self.parameters.get("schema") or "public"
        table_records = await client.fetch(_TABLES_SQL, schema)
        column_records = await client.fetch(_COLUMNS_SQL, schema)

        columns: dict[str, list[dict[str, Any]]] = {
            record["table_name"]: [] for record in table_records
        }
        for record in column_records:
            if record["table_name"] not in columns:
                continue  # views
            columns[record["table_name"]].append({
                "name": record["column_name"],
                "type": record["data_type"],
                "nullable": record["is_nullable"] == "YES",
                "default": record["column_default"],
            })

        return {
            "schema": schema,
            "tables": [{"name": name, "columns": cols} for name, cols in columns.items()],
        }

    def get_connection_string(self) -> str:
        p = self.parameters
        port = p.get("port") or self.DEFAULT_PORT
        return f"postgresql://{p.get('user')}:{REDACTED}@{p.get('host')}:{port}/{p.get('database')}"
