"""
intent_store.py — Read-only access to the platform's intents table.

Owns every SQL statement the map service runs. Four reads:

  fetch_points()    lightweight {id, lat, lng} rows inside a bbox (clusters)
  fetch_page_ids()  one page of ids inside a bbox, boost-then-start ordered
  count()           total rows for the same predicate as fetch_page_ids()
  hydrate()         full records for a list of ids — ORDER NOT GUARANTEED

All spatial filtering goes through ST_Intersects against the GiST index on
intents.geom. Only PUBLIC intents are ever visible here; the canceled /
deleted rule comes from the compiled filter fragment.

`conn` is anything with asyncpg's fetch / fetchval coroutines — a Pool in
production, a fake in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from intentmap.models.map import FilterSet
from intentmap.services.filter_compiler import compile_filters
from intentmap.services.webmercator import BBox

_BBOX_CTE = "WITH bbox AS (SELECT ST_MakeEnvelope($1, $2, $3, $4, 4326) AS geom)"

_BASE_FROM = """
    FROM intents i
    CROSS JOIN bbox
    WHERE i.geom IS NOT NULL
      AND ST_Intersects(i.geom, bbox.geom)
      AND i.visibility = 'PUBLIC'
"""

_HYDRATE_SQL = """
    SELECT
        i.id, i.title, i.description, i.address, i.lat, i.lng,
        i."startAt"     AS start_at,
        i."endAt"       AS end_at,
        i.visibility::text   AS visibility,
        i."joinMode"::text   AS join_mode,
        i."meetingKind"::text AS meeting_kind,
        i.levels::text[]     AS levels,
        i."boostedAt"   AS boosted_at,
        i."canceledAt"  AS canceled_at,
        i."deletedAt"   AS deleted_at,
        i."createdAt"   AS created_at,
        (SELECT COUNT(*) FROM intent_members m
          WHERE m."intentId" = i.id AND m.status = 'JOINED')::int AS members_count,
        json_build_object(
            'id', u.id, 'name', u.name, 'imageUrl', u."imageUrl", 'verifiedAt', u."verifiedAt"
        ) AS owner,
        COALESCE((
            SELECT json_agg(json_build_object('id', c.id, 'slug', c.slug, 'name', c.name) ORDER BY c.slug)
            FROM "_CategoryToIntent" ci JOIN categories c ON c.id = ci."A"
            WHERE ci."B" = i.id
        ), '[]'::json) AS categories,
        COALESCE((
            SELECT json_agg(json_build_object('id', t.id, 'slug', t.slug, 'label', t.label) ORDER BY t.slug)
            FROM "_IntentToTag" it JOIN tags t ON t.id = it."B"
            WHERE it."A" = i.id
        ), '[]'::json) AS tags,
        (
            SELECT json_build_object(
                'plan', s.plan::text, 'status', s.status::text,
                'sponsor', json_build_object('id', su.id, 'name', su.name, 'imageUrl', su."imageUrl",
                                             'verifiedAt', su."verifiedAt")
            )
            FROM event_sponsorships s JOIN users su ON su.id = s."sponsorId"
            WHERE s."intentId" = i.id
            LIMIT 1
        ) AS sponsorship
    FROM intents i
    JOIN users u ON u.id = i."ownerId"
    WHERE i.id = ANY($1::text[])
"""


@dataclass(frozen=True, slots=True)
class PointRow:
    id: str
    lat: float
    lng: float


def _bbox_params(bbox: BBox) -> list[float]:
    return [bbox.sw_lon, bbox.sw_lat, bbox.ne_lon, bbox.ne_lat]


class IntentStore:
    def __init__(self, conn: Any):
        self.conn = conn

    async def fetch_points(
        self,
        bbox: BBox,
        filters: Optional[FilterSet],
        now: datetime,
        limit: int,
    ) -> list[PointRow]:
        compiled = compile_filters(filters, start_index=5, now=now)
        sql = (
            f"{_BBOX_CTE}\n    SELECT i.id, i.lat, i.lng{_BASE_FROM}"
            f"      AND {compiled.sql}\n"
            f"    LIMIT ${compiled.next_index}"
        )
        rows = await self.conn.fetch(sql, *_bbox_params(bbox), *compiled.params, limit)
        return [PointRow(id=r["id"], lat=float(r["lat"]), lng=float(r["lng"])) for r in rows]

    async def fetch_page_ids(
        self,
        bbox: BBox,
        filters: Optional[FilterSet],
        now: datetime,
        take: int,
        skip: int,
        boost_window: timedelta,
    ) -> list[str]:
        """
        Ids for one page, ordered by:
          1. active boost (boostedAt within the window), most recent first
          2. startAt ascending
          3. id, so equal start times page deterministically
        """
        compiled = compile_filters(filters, start_index=8, now=now)
        sql = (
            f"{_BBOX_CTE}\n    SELECT i.id{_BASE_FROM}"
            f"      AND {compiled.sql}\n"
            '    ORDER BY CASE WHEN i."boostedAt" >= $7::timestamptz THEN i."boostedAt" END DESC NULLS LAST,\n'
            '             i."startAt" ASC,\n'
            "             i.id ASC\n"
            "    LIMIT $5 OFFSET $6"
        )
        rows = await self.conn.fetch(
            sql, *_bbox_params(bbox), take, skip, now - boost_window, *compiled.params
        )
        return [r["id"] for r in rows]

    async def count(self, bbox: BBox, filters: Optional[FilterSet], now: datetime) -> int:
        compiled = compile_filters(filters, start_index=5, now=now)
        sql = f"{_BBOX_CTE}\n    SELECT COUNT(*)::int AS c{_BASE_FROM}      AND {compiled.sql}\n"
        total = await self.conn.fetchval(sql, *_bbox_params(bbox), *compiled.params)
        return total or 0

    async def hydrate(self, ids: list[str]) -> list[dict]:
        if not ids:
            return []
        rows = await self.conn.fetch(_HYDRATE_SQL, list(ids))
        return [dict(r) for r in rows]
