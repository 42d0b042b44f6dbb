"""GET /health — bridge health and open connection count."""

from __future__ import annotations

import time

from fastapi import APIRouter

from db_bridge import __version__
from db_bridge.api.dependencies import ManagerDep
from db_bridge.api.schemas import HealthResponse

router = APIRouter(tags=["health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Bridge health check")
async def health(manager: ManagerDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        connections=manager.connection_count,
        supported_types=[t["type"] for t in manager.supported_types()],
    )
