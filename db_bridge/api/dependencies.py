"""API layer — FastAPI dependency injection.

The manager, resolver and toolset are created once at startup and
injected via FastAPI's dependency system.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from db_bridge.config import Settings
from db_bridge.manager import ConnectionManager
from db_bridge.tools.database import DatabaseTools

HEADER_API_TOKEN = "X-DB-Bridge-Token"


def get_tools(request: Request) -> DatabaseTools:
    return request.app.state.tools  # type: ignore[no-any-return]


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager  # type: ignore[no-any-return]


def get_config(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


async def verify_api_token(
    request: Request,
    x_db_bridge_token: Annotated[str | None, Header(alias=HEADER_API_TOKEN)] = None,
) -> None:
    """Verify the API token if one is configured."""
    settings: Settings = request.app.state.settings
    expected = settings.server.api_token

    if expected is None:
        return  # No auth configured: local-only mode.

    if x_db_bridge_token != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


# Shorthand type aliases for route signatures.
ToolsDep = Annotated[DatabaseTools, Depends(get_tools)]
ManagerDep = Annotated[ConnectionManager, Depends(get_manager)]
ConfigDep = Annotated[Settings, Depends(get_config)]
AuthDep = Annotated[None, Depends(verify_api_token)]
