"""CLI — Supported database drivers."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from db_bridge.drivers.registry import build_default_registry, discover_drivers

app = typer.Typer(help="List the database backends the bridge can connect to.")
console = Console()


@app.command("list")
def list_drivers(
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON."),
) -> None:
    """List supported backend types, their aliases and required fields."""
    registry = build_default_registry()
    discover_drivers(registry)
    types = registry.supported_types()

    if json_output:
        console.print(Syntax(json.dumps(types, indent=2), "json"))
        return

    table = Table(title="Supported Database Types")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Aliases")
    table.add_column("Default port")
    table.add_column("Required fields", style="green")

    for entry in types:
        table.add_row(
            entry["type"],
            entry["name"],
            ", ".join(entry["aliases"]) or "-",
            str(entry["default_port"] or "-"),
            ", ".join(entry["required_fields"]),
        )
    console.print(table)
