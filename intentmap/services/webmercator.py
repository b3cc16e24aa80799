"""
webmercator.py — WebMercator (EPSG:3857) tile math.

Pure, deterministic helpers shared by the clustering and region drill-down
services:
  - lng/lat  → tile index at a zoom level
  - tile     → bounding box (degrees) and GeoJSON outline

Tile system:
  - zoom z → 2^z × 2^z tiles, tile (0, 0) is the NW corner
  - x grows eastward, y grows southward

USAGE
─────
    from intentmap.services.webmercator import point_to_tile, tile_to_bbox

    tile = point_to_tile(21.0122, 52.2297, 10)   # TileCoord(z=10, x=571, y=337)
    bbox = tile_to_bbox(tile.x, tile.y, tile.z)  # contains the original point
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# Latitude at which the square Mercator world ends (atan(sinh(π))).
MAX_LATITUDE = 85.05112878


@dataclass(frozen=True, slots=True)
class TileCoord:
    """Tile index at a given zoom level."""
    z: int
    x: int
    y: int


@dataclass(frozen=True, slots=True)
class BBox:
    """Axis-aligned geographic box, SW and NE corners in degrees."""
    sw_lon: float
    sw_lat: float
    ne_lon: float
    ne_lat: float

    def contains(self, lng: float, lat: float) -> bool:
        return self.sw_lon <= lng <= self.ne_lon and self.sw_lat <= lat <= self.ne_lat


def clamp(n, lo, hi):
    """
    Bound n to [lo, hi].

    With inverted bounds (lo > hi) the result is lo, because the max()
    is applied last.
    """
    return max(lo, min(hi, n))


def clamp_latitude(lat: float) -> float:
    return clamp(lat, -MAX_LATITUDE, MAX_LATITUDE)


def point_to_tile(lng: float, lat: float, zoom: int) -> TileCoord:
    """
    Convert a WGS84 point to its tile index at `zoom`.

    Latitude is clamped to the Mercator range first so poles don't turn
    into NaN/inf, and the index is clamped into [0, 2^zoom - 1] so that
    lng == 180 lands in the last column instead of one past it.
    """
    n = 2 ** zoom
    lat_rad = math.radians(clamp_latitude(lat))
    x = math.floor((lng + 180.0) / 360.0 * n)
    y = math.floor((1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n)
    return TileCoord(z=zoom, x=clamp(x, 0, n - 1), y=clamp(y, 0, n - 1))


def _tile_lon(x: int, n: int) -> float:
    return x / n * 360.0 - 180.0


def _tile_lat(y: int, n: int) -> float:
    return math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y / n))))


def tile_to_bbox(x: int, y: int, zoom: int) -> BBox:
    """Bounding box covering tile (x, y) at `zoom`."""
    n = 2 ** zoom
    return BBox(
        sw_lon=_tile_lon(x, n),
        sw_lat=_tile_lat(y + 1, n),
        ne_lon=_tile_lon(x + 1, n),
        ne_lat=_tile_lat(y, n),
    )


def tile_to_geojson_polygon(x: int, y: int, zoom: int) -> dict:
    """
    GeoJSON Polygon outlining the tile.

    Single closed ring in SW → NW → NE → SE → SW order, [lng, lat] pairs.
    """
    b = tile_to_bbox(x, y, zoom)
    sw = [b.sw_lon, b.sw_lat]
    return {
        "type": "Polygon",
        "coordinates": [[
            sw,
            [b.sw_lon, b.ne_lat],
            [b.ne_lon, b.ne_lat],
            [b.ne_lon, b.sw_lat],
            list(sw),
        ]],
    }
