"""Connection manager — owns the named, live database connections.

The ``ConnectionManager`` is the only component allowed to mutate the
name -> descriptor table.  Drivers are unaware of it; they each own one
backend client handle and nothing else.

Lifecycle per name::

    absent -> connected -> disconnected (name freed)

``connect`` is atomic from the caller's perspective: the descriptor is only
registered after the driver reports success, so a failed attempt leaves
nothing behind.  Connections are only opened on explicit request.

Every operation either returns a plain JSON-friendly dict / list or raises a
``BridgeError`` subclass whose kind tells the caller what went wrong:

    ValidationError / NotSupportedError   -> fix the input
    DuplicateNameError / NotFoundError    -> fix the connection name
    ConnectionError / QueryError / SchemaError -> backend failure
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from db_bridge.drivers.base import BaseDriver, DriverOptions, QueryResult
from db_bridge.drivers.registry import DriverRegistry, build_default_registry
from db_bridge.exceptions import (
    BackendError,
    BridgeError,
    ConnectionError,
    DuplicateNameError,
    NotFoundError,
    NotSupportedError,
    QueryError,
    SchemaError,
    ValidationError,
)
from db_bridge.logging import get_logger

log = get_logger(__name__)

# Non-secret fields an imported entry must carry, per backend family.
_IMPORT_REQUIRED: dict[str, tuple[str, ...]] = {
    "dynamodb": ("region",),
    "redis": ("host",),
}
_IMPORT_REQUIRED_DEFAULT = ("host", "database", "user")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectionDescriptor:
    """The manager's record of one live, named connection."""

    name: str
    backend_type: str
    driver: BaseDriver
    created_at: datetime
    last_used_at: datetime

    @property
    def parameters(self) -> dict[str, Any]:
        return self.driver.parameters

    def touch(self) -> None:
        self.last_used_at = _utcnow()


class ConnectionManager:
    """Registry of named connections across heterogeneous backends.

    Args:
        registry: Driver registry used to resolve backend types.  A fresh
                  default registry is built when omitted.
        options:  Driver defaults (pool size, timeouts) applied to every
                  connection unless its parameters override them.
    """

    def __init__(
        self,
        registry: DriverRegistry | None = None,
        options: DriverOptions | None = None,
    ) -> None:
        self._registry = registry if registry is not None else build_default_registry()
        self._options = options or DriverOptions()
        self._connections: dict[str, ConnectionDescriptor] = {}
        # Names reserved while a connect() is awaiting its driver.
        self._pending: set[str] = set()
        self._sequence = 0

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _get(self, name: str) -> ConnectionDescriptor:
        descriptor = self._connections.get(name)
        if descriptor is None:
            raise NotFoundError(name)
        return descriptor

    def _next_name(self, backend_type: str) -> str:
        prefix = backend_type.lower()
        while True:
            self._sequence += 1
            name = f"{prefix}_{self._sequence}"
            if name not in self._connections and name not in self._pending:
                return name

    def has_connection(self, name: str) -> bool:
        return name in self._connections

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def supported_types(self) -> list[dict[str, Any]]:
        return self._registry.supported_types()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Open a new named connection.

        *params* must carry ``type``; ``name`` is optional and defaults to
        ``{type}_{n}``.  All other keys are passed to the driver.

        Raises:
            ValidationError: ``type`` or a backend-required field is missing.
            NotSupportedError: ``type`` is not a registered identifier.
            DuplicateNameError: ``name`` is already registered.
            ConnectionError: The backend rejected the connection.
        """
        parameters = dict(params)
        backend_type = parameters.pop("type", None) or parameters.pop("backend_type", None)
        parameters.pop("backend_type", None)
        if not backend_type:
            raise ValidationError("Database type is required", missing_fields=["type"])

        driver_class = self._registry.resolve(backend_type)

        name = parameters.pop("name", None) or self._next_name(str(backend_type))
        if name in self._connections or name in self._pending:
            raise DuplicateNameError(name)

        driver = driver_class(parameters, self._options)
        self._pending.add(name)
        try:
            await driver.connect()
        except ValidationError as exc:
            exc.context["connection"] = name
            raise
        except BackendError as exc:
            log.warning(
                "connection_failed",
                connection=name,
                backend_type=driver_class.BACKEND_TYPE,
                error=exc.message,
            )
            raise ConnectionError(
                f"Connection '{name}': {exc.message}",
                backend_type=driver_class.BACKEND_TYPE,
                connection=name,
            ) from exc
        finally:
            self._pending.discard(name)

        now = _utcnow()
        descriptor = ConnectionDescriptor(
            name=name,
            backend_type=driver_class.BACKEND_TYPE,
            driver=driver,
            created_at=now,
            last_used_at=now,
        )
        self._connections[name] = descriptor
        log.info(
            "connection_opened",
            connection=name,
            backend_type=descriptor.backend_type,
            target=driver.get_connection_string(),
        )
        return {
            "name": name,
            "type": descriptor.backend_type,
            "status": "connected",
            "created_at": now.isoformat(),
            "connection_string": driver.get_connection_string(),
        }

    async def disconnect(self, name: str) -> dict[str, Any]:
        """Close *name* and free the name, even if the driver fails to close.

        Raises:
            NotFoundError: *name* is not registered.
            ConnectionError: The driver failed to release its handle; the
                name has been freed regardless.
        """
        descriptor = self._get(name)
        try:
            await descriptor.driver.disconnect()
        except Exception as exc:
            log.warning("connection_close_failed", connection=name, error=str(exc))
            raise ConnectionError(
                f"Failed to disconnect from '{name}': {exc}",
                backend_type=descriptor.backend_type,
                connection=name,
            ) from exc
        finally:
            self._connections.pop(name, None)
        log.info("connection_closed", connection=name)
        return {"name": name, "status": "disconnected"}

    async def disconnect_all(self) -> dict[str, Any]:
        """Close every connection; one outcome per name, never short-circuits."""
        results: list[dict[str, Any]] = []
        for name in list(self._connections):
            try:
                await self.disconnect(name)
            except BridgeError as exc:
                results.append({"name": name, "success": False, "error": exc.message})
            else:
                results.append({"name": name, "success": True})

        failed = sum(1 for r in results if not r["success"])
        return {
            "success": failed == 0,
            "total": len(results),
            "disconnected": len(results) - failed,
            "failed": failed,
            "results": results,
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def execute_query(
        self,
        name: str,
        statement: str | Sequence[Any],
        params: Sequence[Any] | None = None,
    ) -> QueryResult:
        """Run *statement* on connection *name*.

        Raises:
            NotFoundError: *name* is not registered (no driver call is made).
            QueryError: The backend rejected the statement.
        """
        descriptor = self._get(name)
        descriptor.touch()
        start = time.perf_counter()
        try:
            result = await descriptor.driver.query(statement, params or [])
        except BackendError as exc:
            log.warning("query_failed", connection=name, error=exc.message)
            error_class = ConnectionError if isinstance(exc, ConnectionError) else QueryError
            raise error_class(
                f"Query failed on '{name}': {exc.message}",
                backend_type=descriptor.backend_type,
                connection=name,
            ) from exc
        log.info(
            "query_executed",
            connection=name,
            row_count=result.row_count,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    async def test_connection(self, name: str) -> dict[str, Any]:
        """Health-check *name*.  Only ``NotFoundError`` is ever raised."""
        descriptor = self._get(name)
        try:
            status = await descriptor.driver.test_connection()
        except Exception as exc:
            return {"name": name, "healthy": False, "message": str(exc)}
        return {"name": name, **status.to_dict()}

    async def get_schema(self, name: str) -> dict[str, Any]:
        """Introspect the structure behind *name*.

        Raises:
            NotFoundError: *name* is not registered.
            SchemaError: The backend rejected the introspection.
        """
        descriptor = self._get(name)
        descriptor.touch()
        try:
            schema = await descriptor.driver.get_schema()
        except BackendError as exc:
            error_class = ConnectionError if isinstance(exc, ConnectionError) else SchemaError
            raise error_class(
                f"Schema introspection failed on '{name}': {exc.message}",
                backend_type=descriptor.backend_type,
                connection=name,
            ) from exc
        return {"name": name, "type": descriptor.backend_type, "schema": schema}

    # ------------------------------------------------------------------
    # Views (never contain secrets)
    # ------------------------------------------------------------------

    def get_connection_info(self, name: str) -> dict[str, Any]:
        descriptor = self._get(name)
        driver = descriptor.driver
        return {
            "name": name,
            "type": descriptor.backend_type,
            **driver.describe(),
            "connection_string": driver.get_connection_string(),
            "created_at": descriptor.created_at.isoformat(),
            "last_used_at": descriptor.last_used_at.isoformat(),
            "status": "connected" if driver.connected else "disconnected",
        }

    def list_connections(self) -> list[dict[str, Any]]:
        snapshot = []
        for name, descriptor in self._connections.items():
            summary = descriptor.driver.describe()
            snapshot.append({
                "name": name,
                "type": descriptor.backend_type,
                "host": summary.get("host"),
                "database": summary.get("database"),
                "created_at": descriptor.created_at.isoformat(),
                "last_used_at": descriptor.last_used_at.isoformat(),
                "status": "connected" if descriptor.driver.connected else "disconnected",
            })
        return snapshot

    def export_connections(self) -> dict[str, dict[str, Any]]:
        """Non-secret configuration of every connection, keyed by name.

        The output cannot re-open a connection without credentials being
        supplied again.
        """
        return {
            name: {"type": descriptor.backend_type, **descriptor.driver.public_parameters()}
            for name, descriptor in self._connections.items()
        }

    async def import_connections(
        self,
        configs: Mapping[str, Mapping[str, Any]],
        overwrite: bool = False,
    ) -> list[dict[str, Any]]:
        """Validate exported configurations; never opens a connection.

        Each entry is reported as ``validated``, ``failed`` or ``skipped``
        (name in use and *overwrite* false), in input order.  With
        *overwrite* true an existing connection of the same name is closed
        first.
        """
        outcomes: list[dict[str, Any]] = []
        for name, config in configs.items():
            if name in self._connections:
                if not overwrite:
                    outcomes.append({
                        "name": name,
                        "success": False,
                        "status": "skipped",
                        "message": f"Connection '{name}' already exists",
                    })
                    continue
                try:
                    await self.disconnect(name)
                except ConnectionError as exc:
                    # The name is freed even when the close fails.
                    log.warning("import_overwrite_close_failed", connection=name, error=exc.message)

            try:
                self._validate_import(config)
            except (ValidationError, NotSupportedError) as exc:
                outcomes.append({
                    "name": name,
                    "success": False,
                    "status": "failed",
                    "message": exc.message,
                })
            else:
                outcomes.append({
                    "name": name,
                    "success": True,
                    "status": "validated",
                    "message": "Configuration is valid; supply credentials to connect",
                })
        return outcomes

    def _validate_import(self, config: Mapping[str, Any]) -> None:
        if not isinstance(config, Mapping):
            raise ValidationError("Connection configuration must be an object")
        backend_type = config.get("type")
        if not backend_type:
            raise ValidationError.missing(["type"])
        canonical = self._registry.canonical_type(backend_type)
        required = _IMPORT_REQUIRED.get(canonical, _IMPORT_REQUIRED_DEFAULT)
        missing = [field for field in required if config.get(field) in (None, "")]
        if missing:
            raise ValidationError.missing(missing, backend_type=canonical)
