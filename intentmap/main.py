"""
Intent Map API — FastAPI application.

Serves the map's two read paths (viewport clusters and region drill-down)
over the platform's PostGIS database. Run locally with any ASGI server,
e.g. `uvicorn intentmap.main:app --reload`.

Startup opens the asyncpg pool; if Postgres is down the app still starts,
/health reports it and the map routes answer 503.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from intentmap.core import database
from intentmap.core.config import settings
from intentmap.core.rate_limit import limiter
from intentmap.routes.health import API_VERSION
from intentmap.routes.health import router as health_router
from intentmap.routes.map import router as map_router
from intentmap.services.region_token import InvalidRegionToken

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Postgres pool on startup, close it on shutdown."""
    logger.info("Starting Intent Map API (env: %s)", settings.environment)
    # through the module so tests can patch the lifecycle
    await database.connect_to_db()
    yield
    logger.info("Shutting down Intent Map API")
    await database.close_db_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
_show_docs = settings.environment != "production"

app = FastAPI(
    title="Intent Map API",
    description=(
        "Server-side map clustering and region drill-down for public intents. "
        "Read-only over the platform's PostGIS database."
    ),
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if _show_docs else None,
    redoc_url="/redoc" if _show_docs else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# slowapi looks the limiter up on app.state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ─── Error handlers ────────────────────────────────────────────────────────────
async def _invalid_region_handler(request: Request, exc: InvalidRegionToken) -> JSONResponse:
    logger.info("Rejected region token on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Invalid region token"})


app.add_exception_handler(InvalidRegionToken, _invalid_region_handler)


# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Clusters-Truncated"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(map_router)


@app.get("/", tags=["root"])
async def root():
    return {
        "name": "Intent Map API",
        "version": API_VERSION,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs" if _show_docs else None,
    }
