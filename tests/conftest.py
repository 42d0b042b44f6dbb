"""Shared pytest fixtures for the db-bridge test suite."""

from __future__ import annotations

from typing import Any

import pytest

from db_bridge.config import Settings, override_settings
from db_bridge.drivers.base import REDACTED, BaseDriver, QueryResult
from db_bridge.drivers.registry import DriverRegistry
from db_bridge.manager import ConnectionManager


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    settings = Settings(
        logging={"level": "debug", "format": "console"},
        connections={
            "reporting": {
                "type": "x",
                "host": "reports.internal",
                "database": "reports",
                "user": "reporter",
                "password": "saved-secret",
            }
        },
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Stub driver
# ---------------------------------------------------------------------------


@pytest.fixture
def stub_driver_class() -> type[BaseDriver]:
    """A fresh in-memory driver class per test (backend type ``"x"``).

    Set ``connect_error``, ``ping_error``, ``close_error``, ``query_error`` or
    ``schema_error`` on the class to make the matching hook raise.
    """

    class StubDriver(BaseDriver):
        BACKEND_TYPE = "x"
        DISPLAY_NAME = "Stub"
        DEFAULT_PORT = 1234
        REQUIRED_FIELDS = ("host", "database", "user", "password")

        connect_error: Exception | None = None
        ping_error: Exception | None = None
        close_error: Exception | None = None
        query_error: Exception | None = None
        schema_error: Exception | None = None
        instances: list["StubDriver"] = []

        def __init__(self, parameters: Any, options: Any = None) -> None:
            super().__init__(parameters, options)
            self.opened = 0
            self.closed = 0
            self.statements: list[tuple[str, list[Any]]] = []
            type(self).instances.append(self)

        async def _open(self) -> Any:
            self.opened += 1
            if self.connect_error is not None:
                raise self.connect_error
            return object()

        async def _ping(self, client: Any) -> None:
            if self.ping_error is not None:
                raise self.ping_error

        async def _close(self, client: Any) -> None:
            self.closed += 1
            if self.close_error is not None:
                raise self.close_error

        async def _execute(self, client: Any, statement: str, params: list[Any]) -> QueryResult:
            self.statements.append((statement, params))
            if self.query_error is not None:
                raise self.query_error
            return QueryResult(rows=[{"value": 1}], extras={"echo": statement})

        async def _introspect(self, client: Any) -> dict[str, Any]:
            if self.schema_error is not None:
                raise self.schema_error
            return {"tables": [{"name": "items", "columns": []}]}

        def get_connection_string(self) -> str:
            p = self.parameters
            return f"x://{p.get('user')}:{REDACTED}@{p.get('host')}/{p.get('database')}"

    return StubDriver


@pytest.fixture
def stub_registry(stub_driver_class: type[BaseDriver]) -> DriverRegistry:
    registry = DriverRegistry()
    registry.register(stub_driver_class, "x-alt")
    return registry


@pytest.fixture
def manager(stub_registry: DriverRegistry) -> ConnectionManager:
    return ConnectionManager(registry=stub_registry)


@pytest.fixture
def x_params() -> dict[str, Any]:
    return {"type": "x", "host": "h", "database": "d", "user": "u", "password": "p"}
