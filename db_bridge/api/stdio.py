"""API layer — MCP tool server over stdio.

The same :class:`DatabaseTools` surface the HTTP app exposes, spoken as the
Model Context Protocol on stdin/stdout so an agent host can launch
``db-bridge serve stdio`` as a subprocess.

- ``tools/list`` returns every tool of the manifest with its input schema.
- ``tools/call`` dispatches through ``DatabaseTools.call`` and answers with
  one text block holding the ``ToolResult`` JSON.  Operational failures are
  ``{"success": false, ...}`` results, never protocol errors.

stdout belongs to the protocol: logging is configured onto stderr and
nothing in this module prints.
"""

from __future__ import annotations

from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from db_bridge import __version__
from db_bridge.api.server import build_tools
from db_bridge.config import Settings, get_settings
from db_bridge.drivers.registry import DriverRegistry
from db_bridge.logging import configure_logging, get_logger
from db_bridge.tools.database import DatabaseTools

log = get_logger(__name__)

SERVER_NAME = "db-bridge"


def list_tool_definitions(tools: DatabaseTools) -> list[types.Tool]:
    return [
        types.Tool(**spec.to_tool_definition())
        for spec in tools.get_manifest().tools
    ]


async def call_tool(
    tools: DatabaseTools, name: str, arguments: dict[str, Any] | None
) -> list[types.TextContent]:
    result = await tools.call(name, arguments or {})
    return [types.TextContent(type="text", text=result.to_json(indent=2))]


def build_server(tools: DatabaseTools) -> Server:
    """Return an MCP server whose handlers delegate to *tools*."""
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return list_tool_definitions(tools)

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict[str, Any] | None
    ) -> list[types.TextContent]:
        return await call_tool(tools, name, arguments)

    return server


async def serve_stdio(
    settings: Settings | None = None,
    registry: DriverRegistry | None = None,
) -> None:
    """Serve the tool surface on stdin/stdout until the client disconnects.

    Every connection opened during the session is closed on the way out,
    including when the session ends with an error.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(
        level=settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )

    tools = build_tools(settings, registry)
    server = build_server(tools)
    log.info(
        "bridge_ready",
        transport="stdio",
        drivers=tools.manager.registry.identifiers(),
        saved_configs=len(tools.resolver.list_names()) if tools.resolver else 0,
    )
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream, write_stream, server.create_initialization_options()
            )
    finally:
        log.info("bridge_stopping", transport="stdio")
        await tools.cleanup()
