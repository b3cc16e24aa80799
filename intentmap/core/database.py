"""
PostgreSQL / PostGIS connection pool (asyncpg).

One DatabaseClient instance lives for the whole process. Routes reach the
pool through the get_db dependency; the pool is opened and closed by the
FastAPI lifespan in main.py. DATABASE_URL picks the server.
"""

import json
import logging
import re

import asyncpg

from intentmap.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseClient:
    """Holds the asyncpg pool, or None while Postgres is unreachable."""

    pool: asyncpg.Pool | None = None


# Shared by the lifespan hooks, get_db and the health check
db_client = DatabaseClient()


async def connect_to_db() -> None:
    """
    Create the connection pool and validate it with a trivial query.

    Called once at app startup (via lifespan). Fails gracefully if
    Postgres is unavailable — the API still responds, map endpoints
    return 503 and the health check reports the real status.
    """
    logger.info("Connecting to Postgres at %s", _redact_dsn(settings.database_url))
    try:
        db_client.pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
            init=_init_connection,
        )
        await db_client.pool.fetchval("SELECT 1")
        logger.info("Postgres pool established (max_size: %d)", settings.db_pool_max_size)
    except Exception as exc:  # any failure leaves the API in degraded mode
        logger.warning(
            "Postgres unavailable at startup: %s. "
            "API running in degraded mode — map endpoints will fail.",
            exc,
        )
        db_client.pool = None


async def close_db_connection() -> None:
    """Close the pool gracefully on app shutdown."""
    if db_client.pool is not None:
        await db_client.pool.close()
        db_client.pool = None
        logger.info("Postgres pool closed")


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json / jsonb columns (hydrated nested objects) into Python values."""
    for typename in ("json", "jsonb"):
        await conn.set_type_codec(typename, encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


def get_db() -> asyncpg.Pool | None:
    """
    FastAPI dependency — inject the pool into route handlers.

    Returns None when Postgres is unavailable so routes can answer 503
    themselves instead of failing inside a query.
    """
    return db_client.pool


def _redact_dsn(dsn: str) -> str:
    """Strip credentials from the DSN before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", dsn)
