"""
GET /health — liveness plus Postgres reachability.

Always 200 while the process is up. `database` is "connected" only when
the pool answers SELECT 1, so the map front end can show "service degraded"
instead of an empty map.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from intentmap.core import database as db_module
from intentmap.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

API_VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str      # "connected" | "disconnected"
    environment: str


async def _ping_database() -> bool:
    # looked up on every call; tests swap db_client.pool
    pool = db_module.db_client.pool
    if pool is None:
        return False
    try:
        await pool.fetchval("SELECT 1")
    except Exception as exc:
        logger.warning("Postgres ping failed: %s", exc)
        return False
    return True


@router.get("", response_model=HealthResponse, summary="Liveness and database status")
async def health_check() -> HealthResponse:
    reachable = await _ping_database()
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        database="connected" if reachable else "disconnected",
        environment=settings.environment,
    )
