"""Drivers — MySQL / MariaDB (SQLAlchemy engine over PyMySQL).

SQLAlchemy supplies the connection pool; PyMySQL speaks the wire protocol.
Both are synchronous, so every call runs in a worker thread.  Statements use
PyMySQL's positional ``%s`` placeholders.
"""

from __future__ import annotations

import asyncio
from typing import Any

import sqlalchemy as sa

from db_bridge.drivers.base import REDACTED, BaseDriver, QueryResult

_TABLES_SQL = """
    SELECT TABLE_NAME
    FROM INFORMATION_SCHEMA.TABLES
    WHERE TABLE_SCHEMA = DATABASE()
    ORDER BY TABLE_NAME
"""

_COLUMNS_SQL = """
    SELECT TABLE_NAME, COLUMN_NAME, DATA_TYPE, IS_NULLABLE, COLUMN_DEFAULT
    FROM INFORMATION_SCHEMA.COLUMNS
    WHERE TABLE_SCHEMA = DATABASE()
    ORDER BY TABLE_NAME, ORDINAL_POSITION
"""


class MySQLDriver(BaseDriver):
    BACKEND_TYPE = "mysql"
    DISPLAY_NAME = "MySQL"
    DEFAULT_PORT = 3306
    REQUIRED_FIELDS = ("host", "database", "user", "password")

    def _build_url(self) -> sa.URL:
        p = self.parameters
        return sa.URL.create(
            "mysql+pymysql",
            username=p["user"],
            password=p["password"],
            host=p["host"],
            port=int(p.get("port") or self.DEFAULT_PORT),
            database=p["database"],
            query={"charset": "utf8mb4"},
        )

    def _create_engine(self) -> sa.Engine:
        connect_args: dict[str, Any] = {
            "connect_timeout": max(1, int(self._setting("connection_timeout"))),
        }
        ssl = self.parameters.get("ssl")
        if isinstance(ssl, dict):
            connect_args["ssl"] = ssl
        elif ssl:
            # Encrypt without verifying the server certificate.
            connect_args["ssl"] = {"check_hostname": False}

        query_timeout = self._setting("query_timeout")
        if query_timeout:
            connect_args["read_timeout"] = int(query_timeout)

        acquire_timeout = self.parameters.get("acquire_timeout") or self._setting(
            "connection_timeout"
        )
        return sa.create_engine(
            self._build_url(),
            pool_size=int(self._setting("max_connections")),
            max_overflow=0,
            pool_timeout=float(acquire_timeout),
            pool_recycle=max(1, int(self._setting("idle_timeout"))),
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    # ------------------------------------------------------------------
    # Hooks (engine work runs in a worker thread)
    # ------------------------------------------------------------------

    async def _open(self) -> Any:
        return await asyncio.to_thread(self._create_engine)

    async def _ping(self, client: Any) -> None:
        await asyncio.to_thread(self._ping_sync, client)

    async def _close(self, client: Any) -> None:
        await asyncio.to_thread(client.dispose)

    async def _execute(
        self, client: Any, statement: str, params: list[Any]
    ) -> QueryResult:
        return await asyncio.to_thread(self._execute_sync, client, statement, params)

    async def _introspect(self, client: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._introspect_sync, client)

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    @staticmethod
    def _ping_sync(engine: sa.Engine) -> None:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1").scalar()

    @staticmethod
    def _execute_sync(
        engine: sa.Engine, statement: str, params: list[Any]
    ) -> QueryResult:
        with engine.begin() as conn:
            if params:
                result = conn.exec_driver_sql(statement, tuple(params))
            else:
                result = conn.exec_driver_sql(statement)

            if result.returns_rows:
                fields = list(result.keys())
                rows = [dict(row) for row in result.mappings()]
                return QueryResult(rows=rows, extras={"fields": fields})

            affected = max(result.rowcount, 0)
            return QueryResult(
                rows=[],
                row_count=affected,
                extras={"affected_rows": affected, "insert_id": result.lastrowid or None},
            )

    @staticmethod
    def _introspect_sync(engine: sa.Engine) -> dict[str, Any]:
        with engine.connect() as conn:
            table_rows = conn.exec_driver_sql(_TABLES_SQL).fetchall()
            column_rows = conn.exec_driver_sql(_COLUMNS_SQL).mappings().fetchall()

        columns: dict[str, list[dict[str, Any]]] = {row[0]: [] for row in table_rows}
        for col in column_rows:
            table = col["TABLE_NAME"]
            if table not in columns:
                continue
            columns[table].append({
                "name": col["COLUMN_NAME"],
                "type": col["DATA_TYPE"],
                "nullable": col["IS_NULLABLE"] == "YES",
                "default": col["COLUMN_DEFAULT"],
            })

        return {"tables": [{"name": name, "columns": cols} for name, cols in columns.items()]}

    def get_connection_string(self) -> str:
        p = self.parameters
        port = p.get("port") or self.DEFAULT_PORT
        return f"mysql://{p.get('user')}:{REDACTED}@{p.get('host')}:{port}/{p.get('database')}"
