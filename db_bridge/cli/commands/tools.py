"""CLI — Tool listing and invocation against a running server."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    import httpx

app = typer.Typer(help="List and call database tools on a running server.")
console = Console()


def _client(host: str, port: int, token: str | None) -> "httpx.Client":
    import httpx

    headers = {"X-DB-Bridge-Token": token} if token else {}
    return httpx.Client(base_url=f"http://{host}:{port}", timeout=30.0, headers=headers)


@app.command("list")
def list_tools(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(40100),
    token: str | None = typer.Option(None, envvar="DB_BRIDGE_SERVER__API_TOKEN"),
) -> None:
    """List the tools exposed by the server."""
    try:
        with _client(host, port, token) as client:
            resp = client.get("/tools")
            resp.raise_for_status()
            tools = resp.json()
    except Exception as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    table = Table(title="Database Tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Required params", style="green")
    table.add_column("Description")

    for tool in tools:
        required = tool.get("params_schema", {}).get("required", [])
        table.add_row(tool["name"], ", ".join(required) or "-", tool.get("description", ""))
    console.print(table)


@app.command("call")
def call_tool(
    tool: str = typer.Argument(help="Tool name, e.g. execute_query."),
    params: str = typer.Option("{}", "--params", "-p", help="JSON object of tool params."),
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(40100),
    token: str | None = typer.Option(None, envvar="DB_BRIDGE_SERVER__API_TOKEN"),
) -> None:
    """Call a tool and print its JSON result."""
    try:
        payload = json.loads(params)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --params JSON: {exc}[/red]")
        raise typer.Exit(2)
    if not isinstance(payload, dict):
        console.print("[red]--params must be a JSON object[/red]")
        raise typer.Exit(2)

    try:
        with _client(host, port, token) as client:
            resp = client.post(f"/tools/{tool}", json=payload)
            resp.raise_for_status()
            result = resp.json()
    except Exception as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    console.print(Syntax(json.dumps(result, indent=2), "json"))
    if not result.get("success"):
        raise typer.Exit(1)
