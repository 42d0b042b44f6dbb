"""Drivers — one capability implementation per backend family."""

from db_bridge.drivers.base import (
    BaseDriver,
    DriverOptions,
    HealthStatus,
    QueryResult,
    REDACTED,
)
from db_bridge.drivers.registry import (
    DriverRegistry,
    build_default_registry,
    discover_drivers,
)

__all__ = [
    "BaseDriver",
    "DriverOptions",
    "DriverRegistry",
    "HealthStatus",
    "QueryResult",
    "REDACTED",
    "build_default_registry",
    "discover_drivers",
]
