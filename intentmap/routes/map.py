"""
map.py — Map clustering + region drill-down routes.

Routes:
  POST /api/v1/map/clusters            — cluster markers for a viewport
  POST /api/v1/map/region-intents      — paginated intents inside one cluster tile
  GET  /api/v1/map/regions/{region}    — decode a region token (tile, bbox, outline)

HOW THE DATA FLOWS
──────────────────
1. The map front end posts its viewport (bbox + zoom + filters) to
   /clusters on every settled pan / zoom and draws the returned markers.
2. Every marker carries an opaque `region` token. Clicking a marker posts
   that token (with the same filters) to /region-intents and renders the
   page of intents in the side list, loading more pages on scroll.
3. Both reads use the same filter compiler, so a cluster's count and the
   drill-down list always agree.

Reads use POST because filters carry several arrays; nothing is written.

TESTING YOUR CHANGES
─────────────────────
  pytest tests/test_map_routes.py -v

  curl -X POST http://localhost:8000/api/v1/map/clusters \\
       -H 'content-type: application/json' \\
       -d '{"bbox": {"swLon": 20.8, "swLat": 52.1, "neLon": 21.3, "neLat": 52.4}, "zoom": 11}'
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import asyncpg
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from intentmap.core.config import settings
from intentmap.core.database import get_db
from intentmap.core.rate_limit import limiter
from intentmap.models.map import (
    BBoxOut,
    ClusterMarker,
    ClustersRequest,
    GeoJsonPolygon,
    RegionInfo,
    RegionIntentsRequest,
    RegionIntentsResponse,
)
from intentmap.services.clustering import build_clusters
from intentmap.services.intent_store import IntentStore
from intentmap.services.region_paginator import region_intents as paginate_region
from intentmap.services.region_token import decode_region
from intentmap.services.webmercator import BBox, tile_to_bbox, tile_to_geojson_polygon

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/map", tags=["map"])


def get_optional_store(db=Depends(get_db)) -> Optional[IntentStore]:
    """Dependency: wrap the pool in an IntentStore, None without a database."""
    return IntentStore(db) if db is not None else None


def _require(store: Optional[IntentStore]) -> IntentStore:
    if store is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return store


def get_store(store: Optional[IntentStore] = Depends(get_optional_store)) -> IntentStore:
    """Dependency: like get_optional_store, but 503 without a database."""
    return _require(store)


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("/clusters", response_model=list[ClusterMarker])
@limiter.limit(settings.clusters_rate_limit)
async def get_clusters(
    request: Request,
    response: Response,
    payload: ClustersRequest,
    store: IntentStore = Depends(get_store),
):
    """
    Return cluster markers for the viewport, in no particular order.

    count > 1 markers sit at the centroid of their tile's intents; count == 1
    markers are single intents. Sets X-Clusters-Truncated: true when the
    viewport held more intents than the scan cap.
    """
    bbox = BBox(payload.bbox.sw_lon, payload.bbox.sw_lat, payload.bbox.ne_lon, payload.bbox.ne_lat)
    try:
        result = await build_clusters(
            store,
            bbox,
            payload.zoom,
            payload.filters,
            now=datetime.now(tz=timezone.utc),
            min_cluster_size=settings.min_cluster_size,
            max_points=settings.cluster_max_points,
        )
    except (asyncpg.PostgresError, OSError) as exc:
        logger.exception("Cluster query failed")
        raise HTTPException(status_code=503, detail="Map data unavailable") from exc

    if result.truncated:
        response.headers["X-Clusters-Truncated"] = "true"
    return result.markers


@router.post("/region-intents", response_model=RegionIntentsResponse)
@limiter.limit(settings.region_rate_limit)
async def get_region_intents(
    request: Request,
    payload: RegionIntentsRequest,
    store: Optional[IntentStore] = Depends(get_optional_store),
):
    """
    Return one page of intents inside the tile named by `region`.

    Malformed tokens are rejected with 400 (see the InvalidRegionToken
    handler in main.py), even while the database is down. An empty region
    is a normal empty page.
    """
    decode_region(payload.region)
    store = _require(store)
    try:
        return await paginate_region(
            store,
            payload.region,
            page=payload.page,
            per_page=payload.per_page,
            filters=payload.filters,
            now=datetime.now(tz=timezone.utc),
            default_per_page=settings.region_default_per_page,
            max_per_page=settings.region_max_per_page,
            boost_window=timedelta(hours=settings.boost_window_hours),
        )
    except (asyncpg.PostgresError, OSError) as exc:
        logger.exception("Region query failed for %s", payload.region)
        raise HTTPException(status_code=503, detail="Map data unavailable") from exc


@router.get("/regions/{region}", response_model=RegionInfo)
async def get_region(region: str):
    """
    Decode a region token into its tile, bounding box and outline.

    Lets the client zoom the map onto a drilled-into cluster without doing
    tile math itself. Pure computation, no database.
    """
    tile = decode_region(region)
    b = tile_to_bbox(tile.x, tile.y, tile.z)
    return RegionInfo(
        z=tile.z,
        x=tile.x,
        y=tile.y,
        bbox=BBoxOut(sw_lon=b.sw_lon, sw_lat=b.sw_lat, ne_lon=b.ne_lon, ne_lat=b.ne_lat),
        geo_json=GeoJsonPolygon(**tile_to_geojson_polygon(tile.x, tile.y, tile.z)),
    )
