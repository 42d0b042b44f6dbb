"""CLI — Saved connection configurations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from db_bridge.drivers.base import REDACTED
from db_bridge.drivers.registry import build_default_registry, discover_drivers

if TYPE_CHECKING:
    from db_bridge.config import ConfigResolver

app = typer.Typer(help="Inspect saved connection configurations (files and environment).")
console = Console()


def _secret_keys() -> frozenset[str]:
    registry = build_default_registry()
    discover_drivers(registry)
    return registry.secret_fields()


def _masked(profile: dict[str, Any]) -> dict[str, Any]:
    secret_keys = _secret_keys()
    return {k: (REDACTED if k in secret_keys and v else v) for k, v in profile.items()}


def _resolver(config: Path | None) -> "ConfigResolver":
    from db_bridge.config import ConfigResolver, Settings

    return ConfigResolver(Settings.load(config_file=config))


@app.command("list")
def list_configs(
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """List saved connection configurations."""
    resolver = _resolver(config)

    table = Table(title="Saved Connections")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Host / region")
    table.add_column("Database")

    for name in resolver.list_names():
        profile = resolver.lookup(name) or {}
        table.add_row(
            name,
            str(profile.get("type", "-")),
            str(profile.get("host") or profile.get("region") or "-"),
            str(profile.get("database", "-")),
        )
    console.print(table)


@app.command("show")
def show_config(
    name: str = typer.Argument(help="Saved configuration name."),
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
) -> None:
    """Show one saved configuration with secrets masked."""
    profile = _resolver(config).lookup(name)
    if profile is None:
        console.print(f"[red]No saved configuration named '{name}'[/red]")
        raise typer.Exit(1)
    console.print(Syntax(json.dumps(_masked(profile), indent=2, default=str), "json"))
