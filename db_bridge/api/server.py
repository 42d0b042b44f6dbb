"""API layer — FastAPI application factory.

``create_app()`` is the single entry point for building the FastAPI app.
All dependencies are wired here so that tests can override them by
calling ``create_app()`` with custom objects.
"""

from __future__ import annotations

from fastapi import FastAPI

from db_bridge import __version__
from db_bridge.api.middleware import (
    HANDLED_ERRORS,
    AccessLogMiddleware,
    RequestIDMiddleware,
    build_error_handler,
)
from db_bridge.api.routes import health, tools
from db_bridge.config import ConfigResolver, Settings, get_settings
from db_bridge.drivers.base import DriverOptions
from db_bridge.drivers.registry import DriverRegistry, build_default_registry, discover_drivers
from db_bridge.logging import configure_logging, get_logger
from db_bridge.manager import ConnectionManager
from db_bridge.tools.database import DatabaseTools

log = get_logger(__name__)


def build_tools(
    settings: Settings,
    registry: DriverRegistry | None = None,
) -> DatabaseTools:
    """Wire registry, manager, resolver and tool surface.

    Shared by the HTTP app and the stdio tool server.  Nothing is connected.
    """
    if registry is None:
        registry = build_default_registry()
        discover_drivers(registry)

    manager = ConnectionManager(
        registry=registry,
        options=DriverOptions.from_config(settings.drivers),
    )
    return DatabaseTools(manager, ConfigResolver(settings))


def create_app(
    settings: Settings | None = None,
    registry: DriverRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (used in tests).
        registry: Optional driver registry (used in tests).  When omitted the
                  built-in drivers plus any installed plugins are used.

    Returns:
        A fully configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(
        level=settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )

    app = FastAPI(
        title="DB Bridge",
        description="Runtime-configurable database connections exposed as agent tools.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters: outermost applied last)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Exception handlers
    handler = build_error_handler()
    for exc_cls in HANDLED_ERRORS:
        app.add_exception_handler(exc_cls, handler)  # type: ignore[arg-type]

    # Routers
    app.include_router(health.router)
    app.include_router(tools.router)

    # Startup / shutdown lifecycle
    @app.on_event("startup")
    async def startup() -> None:
        database_tools = build_tools(settings, registry)

        # Attach to app state for dependency injection.
        app.state.settings = settings
        app.state.manager = database_tools.manager
        app.state.resolver = database_tools.resolver
        app.state.tools = database_tools

        log.info(
            "bridge_ready",
            transport="http",
            host=settings.server.host,
            port=settings.server.port,
            drivers=database_tools.manager.registry.identifiers(),
            saved_configs=len(database_tools.resolver.list_names()),
        )

    @app.on_event("shutdown")
    async def shutdown() -> None:
        log.info("bridge_stopping")
        if hasattr(app.state, "tools"):
            await app.state.tools.cleanup()

    return app
