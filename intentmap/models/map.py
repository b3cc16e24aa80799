"""
map.py — Pydantic models for the map clustering API.

Request side
────────────
  BBoxInput              viewport corners in degrees (range-validated)
  FilterSet              shared filters for clusters + region drill-down
  ClustersRequest        POST /api/v1/map/clusters body
  RegionIntentsRequest   POST /api/v1/map/region-intents body

Response side
─────────────
  ClusterMarker          one marker on the map (cluster or single point)
  RegionIntentsResponse  one page of hydrated intents + pagination meta
  RegionInfo             decoded region token (tile, bbox, outline)

Field names are snake_case in Python and camelCase on the wire, matching
what the map front end already sends (swLon, startISO, perPage, ...).
Both spellings are accepted on input.

Enum values are validated here, at the transport layer. The filter
compiler trusts whatever reaches it.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from intentmap.models.intent import Intent


# ── Enums (mirror the Postgres enum types) ────────────────────────────────────

class IntentStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    PAST = "PAST"
    CANCELED = "CANCELED"
    DELETED = "DELETED"
    ANY = "ANY"


class Level(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class MeetingKind(str, Enum):
    ONSITE = "ONSITE"
    ONLINE = "ONLINE"
    HYBRID = "HYBRID"


class JoinMode(str, Enum):
    OPEN = "OPEN"
    REQUEST = "REQUEST"
    INVITE_ONLY = "INVITE_ONLY"


# Deepest page a drill-down request may ask for.
MAX_PAGE = 10_000


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Request models ────────────────────────────────────────────────────────────

class BBoxInput(_CamelModel):
    """Viewport bounding box. Antimeridian-crossing boxes are not supported."""

    sw_lon: float = Field(..., alias="swLon", ge=-180, le=180)
    sw_lat: float = Field(..., alias="swLat", ge=-90, le=90)
    ne_lon: float = Field(..., alias="neLon", ge=-180, le=180)
    ne_lat: float = Field(..., alias="neLat", ge=-90, le=90)


class FilterSet(_CamelModel):
    """
    Structured map filters. Every set field narrows the result (logical AND).

    start_iso / end_iso only apply when status is unset or ANY; the UI
    never sends both, and the compiler does not police it.
    """

    status: Optional[IntentStatus] = None
    start_iso: Optional[datetime] = Field(default=None, alias="startISO")
    end_iso: Optional[datetime] = Field(default=None, alias="endISO")
    verified_only: bool = Field(default=False, alias="verifiedOnly")
    category_slugs: list[str] = Field(default_factory=list, alias="categorySlugs")
    tag_slugs: list[str] = Field(default_factory=list, alias="tagSlugs")
    levels: list[Level] = Field(default_factory=list)
    kinds: list[MeetingKind] = Field(default_factory=list)
    join_modes: list[JoinMode] = Field(default_factory=list, alias="joinModes")


class ClustersRequest(_CamelModel):
    """Request body for POST /api/v1/map/clusters."""

    bbox: BBoxInput
    zoom: float = Field(..., ge=0, le=24)   # fractional while the user is zooming
    filters: Optional[FilterSet] = None


class RegionIntentsRequest(_CamelModel):
    """
    Request body for POST /api/v1/map/region-intents.

    The paginator clamps page (>= 1) and per_page (into [1, 50]) rather
    than rejecting them. page is capped here so OFFSET always fits a
    Postgres bigint; deeper pages are a client bug.
    """

    region: str = Field(..., min_length=1, max_length=200)
    page: int = Field(default=1, le=MAX_PAGE)
    per_page: Optional[int] = Field(default=None, alias="perPage")
    filters: Optional[FilterSet] = None


# ── Response models ───────────────────────────────────────────────────────────

class GeoJsonPolygon(BaseModel):
    type: Literal["Polygon"] = "Polygon"
    coordinates: list[list[list[float]]]


class ClusterMarker(_CamelModel):
    """
    A marker for the map.

    count == 1 → a single (possibly jittered) intent.
    count  > 1 → a cluster placed at the centroid of its members.
    id is only unique within one response.
    """

    id: str
    latitude: float
    longitude: float
    count: int
    region: str                                  # opaque token for drill-down
    geo_json: GeoJsonPolygon = Field(..., alias="geoJson")


class PageMeta(_CamelModel):
    page: int
    total_items: int = Field(..., alias="totalItems")
    total_pages: int = Field(..., alias="totalPages")
    prev_page: Optional[int] = Field(default=None, alias="prevPage")
    next_page: Optional[int] = Field(default=None, alias="nextPage")


class RegionIntentsResponse(BaseModel):
    """One page of intents inside a region tile."""

    data: list[Intent]
    meta: PageMeta


class BBoxOut(_CamelModel):
    sw_lon: float = Field(..., alias="swLon")
    sw_lat: float = Field(..., alias="swLat")
    ne_lon: float = Field(..., alias="neLon")
    ne_lat: float = Field(..., alias="neLat")


class RegionInfo(_CamelModel):
    """Response shape for GET /api/v1/map/regions/{region}."""

    z: int
    x: int
    y: int
    bbox: BBoxOut
    geo_json: GeoJsonPolygon = Field(..., alias="geoJson")
