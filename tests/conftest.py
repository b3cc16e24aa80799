"""
Shared fixtures for the Intent Map API tests. No live Postgres needed.

  mock_db     (autouse) the pool lifecycle is patched out and db_client.pool
              is None, so /health says "disconnected" and the map routes
              answer 503 unless a test injects a store
  client      httpx client against the app
  FakeStore   in-memory IntentStore, injected through dependency_overrides
              or passed straight to the services
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Must run before anything imports intentmap.core.config
os.environ.setdefault("ENVIRONMENT", "test")

from intentmap.services.intent_store import PointRow  # noqa: E402

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

WARSAW = (21.0122, 52.2297)   # (lng, lat)
KRAKOW = (19.9450, 50.0647)


def make_intent_row(intent_id: str, lng: float, lat: float, start_at: datetime,
                    boosted_at: datetime | None = None) -> dict:
    """A hydrated intent row shaped like IntentStore.hydrate() output."""
    return {
        "id": intent_id,
        "title": f"Intent {intent_id}",
        "description": None,
        "address": "Somewhere 1",
        "lat": lat,
        "lng": lng,
        "start_at": start_at,
        "end_at": start_at + timedelta(hours=2),
        "visibility": "PUBLIC",
        "join_mode": "OPEN",
        "meeting_kind": "ONSITE",
        "levels": ["BEGINNER"],
        "boosted_at": boosted_at,
        "canceled_at": None,
        "deleted_at": None,
        "created_at": NOW - timedelta(days=3),
        "members_count": 4,
        "owner": {"id": "u1", "name": "Ola", "imageUrl": None, "verifiedAt": "2026-01-01T00:00:00Z"},
        "categories": [{"id": "c1", "slug": "running", "name": "Running"}],
        "tags": [],
        "sponsorship": None,
    }


class FakeStore:
    """
    In-memory IntentStore.

    Honours the bbox and the boost-then-start ordering; ignores filters
    (filter semantics are covered by the compiler + SQL tests). hydrate()
    returns rows in reverse order to prove callers re-sort.
    """

    def __init__(self, rows: list[dict] | None = None):
        self.rows = rows or []
        self.calls: list[str] = []

    def _in_bbox(self, bbox):
        return [r for r in self.rows if bbox.contains(r["lng"], r["lat"])]

    async def fetch_points(self, bbox, filters, now, limit):
        self.calls.append("fetch_points")
        hits = self._in_bbox(bbox)[:limit]
        return [PointRow(id=r["id"], lat=r["lat"], lng=r["lng"]) for r in hits]

    async def fetch_page_ids(self, bbox, filters, now, take, skip, boost_window):
        self.calls.append("fetch_page_ids")
        threshold = now - boost_window

        def key(r):
            active = r["boosted_at"] is not None and r["boosted_at"] >= threshold
            boost_rank = -r["boosted_at"].timestamp() if active else 0.0
            return (not active, boost_rank, r["start_at"], r["id"])

        ordered = sorted(self._in_bbox(bbox), key=key)
        return [r["id"] for r in ordered[skip:skip + take]]

    async def count(self, bbox, filters, now):
        self.calls.append("count")
        return len(self._in_bbox(bbox))

    async def hydrate(self, ids):
        self.calls.append("hydrate")
        wanted = set(ids)
        return [dict(r) for r in reversed(self.rows) if r["id"] in wanted]


@pytest.fixture(autouse=True)
async def mock_db():
    """Patch out connect / close and start each test with no pool."""
    with (
        patch("intentmap.core.database.connect_to_db", new_callable=AsyncMock),
        patch("intentmap.core.database.close_db_connection", new_callable=AsyncMock),
    ):
        import intentmap.core.database as db_module

        original_pool = db_module.db_client.pool
        db_module.db_client.pool = None

        yield

        db_module.db_client.pool = original_pool


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001  (mock_db must run first)
    """httpx AsyncClient bound to the app in-process; no lifespan, no sockets."""
    from intentmap.main import app
    from intentmap.core.rate_limit import limiter

    # Fresh rate-limit counters so tests don't bleed into each other
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
