"""Drivers — Base capability interface and normalized result types.

Every backend family (relational, managed NoSQL, key-value) implements
:class:`BaseDriver`.  A driver owns exactly one backend client handle
(pool, SDK client or socket) created on ``connect()`` and released on
``disconnect()``; it knows nothing about connection names or the
ConnectionManager.

Subclasses implement five small hooks and inherit validation, rollback and
error wrapping from the public template methods::

    class MyDriver(BaseDriver):
        BACKEND_TYPE = "mydb"
        DISPLAY_NAME = "MyDB"
        REQUIRED_FIELDS = ("host",)

        async def _open(self): ...                              # -> client
        async def _ping(self, client): ...                      # one round-trip
        async def _close(self, client): ...
        async def _execute(self, client, statement, params): ...  # -> QueryResult
        async def _introspect(self, client): ...                # -> dict

        def get_connection_string(self) -> str: ...

Drivers built on synchronous client libraries must run blocking calls in a
worker thread (``asyncio.to_thread``) so the event loop never stalls.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from db_bridge.exceptions import (
    BridgeError,
    ConnectionError,
    QueryError,
    SchemaError,
    ValidationError,
)
from db_bridge.logging import get_logger

log = get_logger(__name__)

# Placeholder substituted for secrets in every display string.
REDACTED = "****"

# camelCase spellings accepted from agent tool calls and JSON config files.
PARAMETER_ALIASES: dict[str, str] = {
    "accessKeyId": "access_key_id",
    "secretAccessKey": "secret_access_key",
    "sessionToken": "session_token",
    "maxConnections": "max_connections",
    "connectionTimeout": "connection_timeout",
    "idleTimeout": "idle_timeout",
    "acquireTimeout": "acquire_timeout",
    "queryTimeout": "query_timeout",
    "connectionName": "connection_name",
    "rejectUnauthorized": "reject_unauthorized",
    "dbname": "database",
}


def normalize_parameters(parameters: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *parameters* with camelCase aliases renamed.

    An explicit snake_case key wins over its camelCase alias.
    """
    normalized: dict[str, Any] = {}
    for key, value in parameters.items():
        target = PARAMETER_ALIASES.get(key, key)
        if target != key and target in parameters:
            continue
        normalized[target] = value
    return normalized


@dataclass
class DriverOptions:
    """Per-manager defaults; connection parameters of the same name win."""

    max_connections: int = 10
    connection_timeout: float = 5.0
    idle_timeout: float = 30.0
    query_timeout: float | None = None

    @classmethod
    def from_config(cls, config: Any) -> "DriverOptions":
        """Build options from a ``DriverConfig`` settings block."""
        return cls(
            max_connections=config.max_connections,
            connection_timeout=config.connection_timeout,
            idle_timeout=config.idle_timeout,
            query_timeout=config.query_timeout,
        )


@dataclass
class QueryResult:
    """Normalized result of a query-like operation.

    ``rows`` is always a list (empty when there are no results) and
    ``row_count`` is never negative.  ``extras`` holds backend-specific
    details such as ``insert_id`` or the raw command echo.
    """

    rows: list[Any] = field(default_factory=list)
    row_count: int | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.rows is None:
            self.rows = []
        if self.row_count is None:
            self.row_count = len(self.rows)
        if self.row_count < 0:
            raise ValueError(f"row_count must be >= 0, got {self.row_count}")

    def to_dict(self) -> dict[str, Any]:
        return {"rows": self.rows, "row_count": self.row_count, **self.extras}


@dataclass
class HealthStatus:
    healthy: bool
    message: str
    latency_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"healthy": self.healthy, "message": self.message}
        if self.latency_ms is not None:
            data["latency_ms"] = self.latency_ms
        return data


class BaseDriver(ABC):
    """Abstract base class for every backend driver."""

    BACKEND_TYPE: str = ""
    """Canonical lowercase backend identifier, e.g. ``"postgresql"``."""

    DISPLAY_NAME: str = ""
    """Human-readable backend name used in error messages."""

    DEFAULT_PORT: int | None = None

    REQUIRED_FIELDS: tuple[str, ...] = ()
    """Parameters that must be present before any network activity."""

    SECRET_FIELDS: tuple[str, ...] = ("password",)
    """Parameters never included in exported or listed views."""

    def __init__(
        self,
        parameters: Mapping[str, Any],
        options: DriverOptions | None = None,
    ) -> None:
        self.parameters: dict[str, Any] = normalize_parameters(parameters)
        self.options = options or DriverOptions()
        self._client: Any = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_config(self) -> None:
        """Check required parameters before any connection attempt.

        Raises:
            ValidationError: Naming every missing field, not just the first.
        """
        missing = [
            name for name in self.REQUIRED_FIELDS
            if self.parameters.get(name) in (None, "")
        ]
        if missing:
            raise ValidationError.missing(missing, backend_type=self.BACKEND_TYPE)
        self._validate_extra()

    def _validate_extra(self) -> None:
        """Backend-specific checks beyond field presence.  Default: none."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the client handle and confirm reachability with one round-trip.

        On failure no handle is retained.

        Raises:
            ValidationError: Required parameters are missing or malformed.
            ConnectionError: The backend rejected the attempt.
        """
        self.validate_config()
        if self._client is not None:
            return
        try:
            self._client = await self._open()
            await self._ping(self._client)
        except Exception as exc:
            await self._discard()
            raise ConnectionError(
                f"Failed to connect to {self.DISPLAY_NAME} database: {exc}",
                backend_type=self.BACKEND_TYPE,
            ) from exc
        log.debug("driver_connected", backend_type=self.BACKEND_TYPE)

    async def _discard(self) -> None:
        """Drop a half-open handle after a failed connect."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await self._close(client)
        except Exception as exc:
            log.warning(
                "driver_rollback_close_failed",
                backend_type=self.BACKEND_TYPE,
                error=str(exc),
            )

    async def disconnect(self) -> None:
        """Release the client handle.  A no-op when already disconnected."""
        client, self._client = self._client, None
        if client is None:
            return
        await self._close(client)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _require_client(self) -> Any:
        if self._client is None:
            raise ConnectionError(
                f"{self.DISPLAY_NAME} database not connected. Call connect() first.",
                backend_type=self.BACKEND_TYPE,
            )
        return self._client

    async def query(
        self, statement: str | Sequence[Any], parameters: Sequence[Any] | None = None
    ) -> QueryResult:
        """Execute *statement* with backend-native parameter binding."""
        client = self._require_client()
        try:
            return await self._execute(client, statement, list(parameters or []))
        except BridgeError:
            raise
        except Exception as exc:
            raise QueryError(
                f"{self.DISPLAY_NAME} query error: {exc}",
                backend_type=self.BACKEND_TYPE,
            ) from exc

    async def test_connection(self) -> HealthStatus:
        """Report reachability.  Never raises."""
        if self._client is None:
            return HealthStatus(healthy=False, message="Not connected")
        start = time.perf_counter()
        try:
            await self._ping(self._client)
        except Exception as exc:
            return HealthStatus(healthy=False, message=f"Connection test failed: {exc}")
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        return HealthStatus(
            healthy=True, message="Connection is healthy", latency_ms=latency_ms
        )

    async def get_schema(self) -> dict[str, Any]:
        """Return a backend-appropriate structural description."""
        client = self._require_client()
        try:
            return await self._introspect(client)
        except BridgeError:
            raise
        except Exception as exc:
            raise SchemaError(
                f"{self.DISPLAY_NAME} schema error: {exc}",
                backend_type=self.BACKEND_TYPE,
            ) from exc

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    @abstractmethod
    def get_connection_string(self) -> str:
        """Return a redacted locator for diagnostics only."""
        ...

    def describe(self) -> dict[str, Any]:
        """Non-secret summary used by list/info views."""
        return {
            "host": self.parameters.get("host"),
            "port": self.parameters.get("port") or self.DEFAULT_PORT,
            "database": self.parameters.get("database"),
            "user": self.parameters.get("user"),
        }

    def public_parameters(self) -> dict[str, Any]:
        """Connection parameters with every secret field removed."""
        return {
            key: value for key, value in self.parameters.items()
            if key not in self.SECRET_FIELDS
        }

    def _setting(self, key: str) -> Any:
        """Connection parameter *key*, falling back to the driver options."""
        value = self.parameters.get(key)
        if value is None:
            return getattr(self.options, key, None)
        return value

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _open(self) -> Any:
        """Create and return the backend client handle."""

    @abstractmethod
    async def _ping(self, client: Any) -> None:
        """Perform one lightweight round-trip; raise on failure."""

    @abstractmethod
    async def _close(self, client: Any) -> None: ...

    @abstractmethod
    async def _execute(
        self, client: Any, statement: str, params: list[Any]
    ) -> QueryResult: ...

    @abstractmethod
    async def _introspect(self, client: Any) -> dict[str, Any]: ...
