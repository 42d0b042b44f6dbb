"""CLI — Server management commands."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

app = typer.Typer(help="Run DB Bridge over HTTP or stdio (MCP) and inspect a running server.")
console = Console()


@app.command("start")
def start(
    host: str = typer.Option("127.0.0.1", help="Host to bind to."),
    port: int = typer.Option(40100, help="Port to listen on."),
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
    log_level: str = typer.Option("info", help="Log level."),
) -> None:
    """Start the HTTP server.  No database is connected at startup."""
    from db_bridge.api.server import create_app
    from db_bridge.config import Settings

    settings = Settings.load(config_file=config)
    settings.server.host = host
    settings.server.port = port
    settings.logging.level = log_level

    console.print(f"[bold green]Starting DB Bridge on {host}:{port}[/bold green]")

    app_instance = create_app(settings=settings)

    uvicorn.run(
        app_instance,
        host=host,
        port=port,
        log_level=log_level,
    )


@app.command("stdio")
def stdio(
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
    log_level: str = typer.Option("warning", help="Log level (written to stderr)."),
) -> None:
    """Serve the database tools as an MCP server on stdin/stdout.

    Meant to be launched by an agent host.  Open connections are closed when
    the host disconnects.
    """
    from db_bridge.api.stdio import serve_stdio
    from db_bridge.config import Settings

    settings = Settings.load(config_file=config)
    settings.logging.level = log_level

    # Nothing may be printed here: stdout carries protocol frames.
    asyncio.run(serve_stdio(settings))


@app.command("status")
def status(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(40100),
) -> None:
    """Check server status."""
    import httpx

    try:
        resp = httpx.get(f"http://{host}:{port}/health", timeout=5.0)
        data = resp.json()
        table = Table(title="DB Bridge Status")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")
        for k, v in data.items():
            table.add_row(str(k), str(v))
        console.print(table)
    except Exception as exc:
        console.print(f"[red]Server unreachable: {exc}[/red]")
        raise typer.Exit(1)
