"""Drivers — Driver registry.

Maps backend-type identifiers (case-insensitive, with aliases) to driver
classes.  The registry is an explicit object owned by a ConnectionManager so
that tests can build isolated registries; ``build_default_registry()`` wires
the built-in drivers.

Usage::

    registry = build_default_registry()
    driver = registry.create("Postgres", {"host": "db", ...})

    # Register a plugin driver:
    registry.register(CockroachDriver, "cockroach", "crdb")

    # Auto-discover pip-installed driver plugins:
    discover_drivers(registry)  # scans entry_points group "db_bridge.drivers"
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from db_bridge.drivers.base import PARAMETER_ALIASES, BaseDriver, DriverOptions
from db_bridge.exceptions import NotSupportedError

logger = logging.getLogger("db_bridge.drivers")

DRIVER_ENTRY_POINT_GROUP = "db_bridge.drivers"


class DriverRegistry:
    """Registry of driver classes keyed by lowercase identifier."""

    def __init__(self) -> None:
        self._drivers: dict[str, type[BaseDriver]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, driver_class: type[BaseDriver], *aliases: str) -> None:
        """Register *driver_class* under its ``BACKEND_TYPE`` and *aliases*.

        Raises:
            TypeError: If *driver_class* is not a ``BaseDriver`` subclass.
            ValueError: If the class declares no ``BACKEND_TYPE``.
        """
        if not isinstance(driver_class, type) or not issubclass(driver_class, BaseDriver):
            raise TypeError(
                f"Driver class must be a subclass of BaseDriver, got {driver_class!r}"
            )
        if not driver_class.BACKEND_TYPE:
            raise ValueError(f"{driver_class.__name__} must set BACKEND_TYPE.")

        for identifier in (driver_class.BACKEND_TYPE, *aliases):
            key = identifier.lower()
            existing = self._drivers.get(key)
            if existing is not None and existing is not driver_class:
                logger.warning(
                    "Overwriting existing driver registration for '%s'", key
                )
            self._drivers[key] = driver_class

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, backend_type: str) -> type[BaseDriver]:
        """Return the driver class for *backend_type*.

        Pure lookup: no I/O, no side effects.

        Raises:
            NotSupportedError: Listing every known identifier.
        """
        driver_class = self._drivers.get(str(backend_type).lower())
        if driver_class is None:
            raise NotSupportedError(str(backend_type), self.identifiers())
        return driver_class

    def create(
        self,
        backend_type: str,
        parameters: Mapping[str, Any],
        options: DriverOptions | None = None,
    ) -> BaseDriver:
        """Resolve *backend_type* and instantiate an unconnected driver."""
        return self.resolve(backend_type)(parameters, options)

    def canonical_type(self, backend_type: str) -> str:
        return self.resolve(backend_type).BACKEND_TYPE

    def identifiers(self) -> list[str]:
        """Every registered identifier, aliases included."""
        return sorted(self._drivers)

    def supported_types(self) -> list[dict[str, Any]]:
        """One record per driver class with its aliases and requirements."""
        grouped: dict[type[BaseDriver], list[str]] = {}
        for identifier, driver_class in self._drivers.items():
            grouped.setdefault(driver_class, []).append(identifier)

        return [
            {
                "type": driver_class.BACKEND_TYPE,
                "name": driver_class.DISPLAY_NAME,
                "aliases": sorted(a for a in aliases if a != driver_class.BACKEND_TYPE),
                "default_port": driver_class.DEFAULT_PORT,
                "required_fields": list(driver_class.REQUIRED_FIELDS),
            }
            for driver_class, aliases in sorted(
                grouped.items(), key=lambda item: item[0].BACKEND_TYPE
            )
        ]

    def secret_fields(self) -> frozenset[str]:
        """Every parameter name a registered driver keeps secret, camelCase aliases included."""
        fields = {name for cls in set(self._drivers.values()) for name in cls.SECRET_FIELDS}
        fields.update(alias for alias, target in PARAMETER_ALIASES.items() if target in fields)
        return frozenset(fields)

    def __contains__(self, backend_type: object) -> bool:
        return isinstance(backend_type, str) and backend_type.lower() in self._drivers

    def __len__(self) -> int:
        return len(self._drivers)


def build_default_registry() -> DriverRegistry:
    """Return a new registry holding the built-in drivers."""
    from db_bridge.drivers.dynamodb import DynamoDBDriver
    from db_bridge.drivers.mysql import MySQLDriver
    from db_bridge.drivers.postgresql import PostgreSQLDriver
    from db_bridge.drivers.redis import RedisDriver

    registry = DriverRegistry()
    registry.register(PostgreSQLDriver, "postgres", "pg")
    registry.register(MySQLDriver, "mysql2")
    registry.register(DynamoDBDriver, "dynamo")
    registry.register(RedisDriver)
    return registry


# ------------------------------------------------------------------
# Entry-point plugin auto-discovery
# ------------------------------------------------------------------


def discover_drivers(registry: DriverRegistry) -> list[str]:
    """Load driver plugins from installed packages into *registry*.

    Scans entry points in the ``db_bridge.drivers`` group.  Each entry point
    should be a callable accepting the registry and performing registration.

    Returns list of successfully loaded entry point names.

    Example ``pyproject.toml`` for a community plugin::

        [project.entry-points."db_bridge.drivers"]
        cockroach = "db_bridge_cockroach:register"

    Where ``db_bridge_cockroach/__init__.py`` contains::

        def register(registry):
            registry.register(CockroachDriver, "crdb")
    """
    import importlib.metadata

    loaded: list[str] = []

    for ep in importlib.metadata.entry_points(group=DRIVER_ENTRY_POINT_GROUP):
        try:
            register_fn = ep.load()
            register_fn(registry)
            loaded.append(ep.name)
            logger.info("Loaded database driver plugin: %s", ep.name)
        except Exception:
            logger.warning(
                "Failed to load database driver plugin: %s",
                ep.name,
                exc_info=True,
            )

    return loaded
