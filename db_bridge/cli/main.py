"""DB Bridge CLI — Entry point.

Usage:
    db-bridge serve start
    db-bridge serve status
    db-bridge drivers list
    db-bridge tools list
    db-bridge tools call <tool> --params '{"connection": "pg_1"}'
    db-bridge config list
    db-bridge config show <name>
"""

from __future__ import annotations

import typer

from db_bridge.cli.commands import config, drivers, serve, tools

app = typer.Typer(
    name="db-bridge",
    help="DB Bridge — database connections as tools for AI agents.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

app.add_typer(serve.app, name="serve")
app.add_typer(drivers.app, name="drivers")
app.add_typer(tools.app, name="tools")
app.add_typer(config.app, name="config")


@app.callback()
def main_callback() -> None:
    pass


if __name__ == "__main__":
    app()
