"""
clustering.py — Tile-based greedy clustering of intents for the map.

HOW IT WORKS
────────────
1. The viewport zoom is clamped to [2, 16] and clustering happens two
   levels finer (cluster zoom Zc = clamp(z + 2, 3, 16)), so clusters split
   visibly as the user zooms in.
2. Every matching point in the viewport is dropped into its WebMercator
   tile at Zc. Each tile keeps running lat/lng sums and its member list.
3. A tile holding at least `min_cluster_size` points becomes one marker at
   the centroid of its members. A smaller tile emits one jittered marker
   per point instead. All markers of a tile carry the tile's region token
   and outline, so any of them can be drilled into.

Marker ids come from one counter for the whole response (also used as the
jitter salt), so they are unique per response and meaningless across
requests.

The point fetch is capped at `max_points`; past that the response is
flagged as truncated rather than scanning the whole table for a
world-sized viewport.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from intentmap.models.map import ClusterMarker, FilterSet, GeoJsonPolygon
from intentmap.services.intent_store import IntentStore, PointRow
from intentmap.services.jitter import jitter
from intentmap.services.region_token import encode_region
from intentmap.services.webmercator import BBox, clamp, point_to_tile, tile_to_geojson_polygon

logger = logging.getLogger(__name__)

MIN_VIEW_ZOOM, MAX_VIEW_ZOOM = 2, 16
MIN_CLUSTER_ZOOM, MAX_CLUSTER_ZOOM = 3, 16
CLUSTER_ZOOM_OFFSET = 2


@dataclass
class TileAggregate:
    x: int
    y: int
    z: int
    sum_lat: float = 0.0
    sum_lng: float = 0.0
    count: int = 0
    points: list[PointRow] = field(default_factory=list)

    def add(self, point: PointRow) -> None:
        self.sum_lat += point.lat
        self.sum_lng += point.lng
        self.count += 1
        self.points.append(point)


@dataclass
class ClusterResult:
    markers: list[ClusterMarker]
    truncated: bool = False


def cluster_zoom(zoom: float) -> int:
    base_z = clamp(math.floor(zoom), MIN_VIEW_ZOOM, MAX_VIEW_ZOOM)
    return clamp(base_z + CLUSTER_ZOOM_OFFSET, MIN_CLUSTER_ZOOM, MAX_CLUSTER_ZOOM)


def aggregate_tiles(points: list[PointRow], zc: int) -> dict[tuple[int, int], TileAggregate]:
    tiles: dict[tuple[int, int], TileAggregate] = {}
    for p in points:
        t = point_to_tile(p.lng, p.lat, zc)
        key = (t.x, t.y)
        tile = tiles.get(key)
        if tile is None:
            tile = tiles[key] = TileAggregate(x=t.x, y=t.y, z=zc)
        tile.add(p)
    return tiles


def build_markers(tiles: dict[tuple[int, int], TileAggregate], min_cluster_size: int) -> list[ClusterMarker]:
    out: list[ClusterMarker] = []
    auto_id = 0

    for tile in tiles.values():
        region = encode_region(tile.z, tile.x, tile.y)
        outline = GeoJsonPolygon(**tile_to_geojson_polygon(tile.x, tile.y, tile.z))

        if tile.count >= min_cluster_size:
            out.append(ClusterMarker(
                id=str(auto_id),
                latitude=tile.sum_lat / tile.count,
                longitude=tile.sum_lng / tile.count,
                count=tile.count,
                region=region,
                geo_json=outline,
            ))
            auto_id += 1
            continue

        # too few for a cluster: individual pins, nudged apart
        for p in tile.points:
            lat, lng = jitter(p.lat, p.lng, auto_id)
            out.append(ClusterMarker(
                id=str(auto_id),
                latitude=lat,
                longitude=lng,
                count=1,
                region=region,
                geo_json=outline,
            ))
            auto_id += 1

    return out


async def build_clusters(
    store: IntentStore,
    bbox: BBox,
    zoom: float,
    filters: Optional[FilterSet],
    *,
    now: datetime,
    min_cluster_size: int = 1,
    max_points: int = 20_000,
) -> ClusterResult:
    """Cluster every matching intent inside `bbox` for display at `zoom`."""
    zc = cluster_zoom(zoom)

    # one extra row tells us whether the cap cut anything off
    points = await store.fetch_points(bbox, filters, now, limit=max_points + 1)
    truncated = len(points) > max_points
    if truncated:
        logger.warning(
            "Cluster viewport hit the %d point cap (zoom=%s, bbox=%s); result truncated",
            max_points, zoom, bbox,
        )
        points = points[:max_points]

    tiles = aggregate_tiles(points, zc)
    markers = build_markers(tiles, min_cluster_size)
    logger.debug(
        "clusters: zoom=%s Zc=%d points=%d tiles=%d markers=%d",
        zoom, zc, len(points), len(tiles), len(markers),
    )
    return ClusterResult(markers=markers, truncated=truncated)
