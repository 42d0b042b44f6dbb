"""DB Bridge — runtime database connections exposed as agent tools.

Architecture layers:
    1. Drivers      — one capability implementation per backend family
                      (PostgreSQL, MySQL, DynamoDB, Redis), selected through
                      an explicit DriverRegistry.
    2. Manager      — ConnectionManager owns the named, live connections and
                      their bookkeeping.
    3. Tools        — DatabaseTools translates tool calls into manager calls
                      and serialises every outcome.
    4. API / CLI    — FastAPI surface, MCP stdio tool server and typer
                      command line.

Connections are only ever opened on explicit request; nothing connects at
startup.
"""

__version__ = "0.1.0"
