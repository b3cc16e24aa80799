"""
region_paginator.py — Paginated intents inside one region tile.

Flow for a region token:
  token → (z, x, y) → tile bbox → [page of ids ∥ total count] → hydrate → re-order

The ids query and the count query share the same predicate but are
independent, so they run concurrently. Hydration returns rows in whatever
order the store likes; the page is rebuilt from the id list.

Paging policy
─────────────
  per_page  default 20, silently clamped into [1, 50]
  page      clamped to >= 1; meta.page echoes the clamped value, so the
            metadata always describes the rows actually returned
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from intentmap.models.intent import Intent
from intentmap.models.map import FilterSet, PageMeta, RegionIntentsResponse
from intentmap.services.intent_store import IntentStore
from intentmap.services.region_token import decode_region
from intentmap.services.webmercator import clamp, tile_to_bbox

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 50
BOOST_WINDOW = timedelta(hours=24)


def page_meta(page: int, take: int, skip: int, returned: int, total: int) -> PageMeta:
    total_pages = 0 if total == 0 else max(1, math.ceil(total / take))
    return PageMeta(
        page=page,
        total_items=total,
        total_pages=total_pages,
        prev_page=page - 1 if page > 1 else None,
        next_page=page + 1 if skip + returned < total else None,
    )


async def region_intents(
    store: IntentStore,
    region: str,
    page: int = 1,
    per_page: Optional[int] = None,
    filters: Optional[FilterSet] = None,
    *,
    now: datetime,
    default_per_page: int = DEFAULT_PER_PAGE,
    max_per_page: int = MAX_PER_PAGE,
    boost_window: timedelta = BOOST_WINDOW,
) -> RegionIntentsResponse:
    """
    Return one page of intents inside the tile named by `region`.

    Raises InvalidRegionToken before touching the store if the token is
    malformed. An empty tile is a normal, empty page.
    """
    tile = decode_region(region)
    bbox = tile_to_bbox(tile.x, tile.y, tile.z)

    take = clamp(per_page if per_page is not None else default_per_page, 1, max_per_page)
    page = max(1, page)
    skip = (page - 1) * take

    ids, total = await asyncio.gather(
        store.fetch_page_ids(bbox, filters, now, take=take, skip=skip, boost_window=boost_window),
        store.count(bbox, filters, now),
    )

    if not ids:
        return RegionIntentsResponse(data=[], meta=page_meta(page, take, skip, 0, total))

    rows = await store.hydrate(ids)
    by_id = {row["id"]: row for row in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        # deleted between the id query and hydration; skip rather than fail
        logger.info("region %s: %d intents vanished before hydration", region, len(missing))

    data = [Intent.model_validate(by_id[i]) for i in ids if i in by_id]
    return RegionIntentsResponse(data=data, meta=page_meta(page, take, skip, len(ids), total))
