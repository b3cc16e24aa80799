"""
test_map_routes.py — Tests for POST /api/v1/map/clusters,
POST /api/v1/map/region-intents and GET /api/v1/map/regions/{region}.

Uses the in-memory FakeStore from conftest, injected through
dependency_overrides, so no real Postgres is needed.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import KRAKOW, NOW, WARSAW, FakeStore, make_intent_row
from intentmap.services.region_token import encode_region
from intentmap.services.webmercator import point_to_tile

POLAND = {"swLon": 14.0, "swLat": 49.0, "neLon": 24.2, "neLat": 54.9}

_TILE = point_to_tile(*WARSAW, 12)
WARSAW_REGION = encode_region(12, _TILE.x, _TILE.y)


def _rows():
    return [
        make_intent_row("w1", *WARSAW, NOW + timedelta(days=1)),
        make_intent_row("w2", *WARSAW, NOW + timedelta(days=2)),
        make_intent_row("w3", *WARSAW, NOW + timedelta(days=3)),
        make_intent_row("k1", *KRAKOW, NOW + timedelta(days=1)),
    ]


@pytest.fixture()
def fake_store():
    return FakeStore(_rows())


@pytest.fixture()
async def map_client(client, fake_store):
    from intentmap.main import app
    from intentmap.routes.map import get_optional_store

    app.dependency_overrides[get_optional_store] = lambda: fake_store
    yield client
    app.dependency_overrides.clear()


# ── POST /clusters ────────────────────────────────────────────────────────────

class TestClusters:
    async def test_returns_markers(self, map_client):
        r = await map_client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})
        assert r.status_code == 200
        markers = r.json()
        assert sorted(m["count"] for m in markers) == [1, 3]

    async def test_marker_fields(self, map_client):
        r = await map_client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})
        marker = r.json()[0]
        for key in ("id", "latitude", "longitude", "count", "region", "geoJson"):
            assert key in marker
        assert marker["geoJson"]["type"] == "Polygon"

    async def test_filters_accepted(self, map_client, fake_store):
        body = {
            "bbox": POLAND,
            "zoom": 10.4,
            "filters": {"status": "UPCOMING", "categorySlugs": ["running"], "levels": ["BEGINNER"]},
        }
        r = await map_client.post("/api/v1/map/clusters", json=body)
        assert r.status_code == 200
        assert fake_store.calls == ["fetch_points"]

    async def test_empty_viewport(self, map_client):
        bbox = {"swLon": -1.0, "swLat": 51.0, "neLon": 0.5, "neLat": 52.0}
        r = await map_client.post("/api/v1/map/clusters", json={"bbox": bbox, "zoom": 8})
        assert r.status_code == 200
        assert r.json() == []

    async def test_not_truncated_by_default(self, map_client):
        r = await map_client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})
        assert "x-clusters-truncated" not in r.headers

    async def test_truncation_header(self, map_client, monkeypatch):
        from intentmap.core.config import settings

        monkeypatch.setattr(settings, "cluster_max_points", 2)
        r = await map_client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})
        assert r.status_code == 200
        assert r.headers["x-clusters-truncated"] == "true"
        assert sum(m["count"] for m in r.json()) == 2

    @pytest.mark.parametrize("body", [
        {"zoom": 6},
        {"bbox": POLAND},
        {"bbox": POLAND, "zoom": 30},
        {"bbox": {**POLAND, "swLat": -95}, "zoom": 6},
        {"bbox": POLAND, "zoom": 6, "filters": {"status": "SOMEDAY"}},
        {"bbox": POLAND, "zoom": 6, "filters": {"levels": ["EXPERT"]}},
    ])
    async def test_invalid_body_is_422(self, map_client, body):
        r = await map_client.post("/api/v1/map/clusters", json=body)
        assert r.status_code == 422

    async def test_store_failure_is_503(self, map_client, fake_store):
        async def boom(*args, **kwargs):
            raise OSError("connection reset by peer")

        fake_store.fetch_points = boom
        r = await map_client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})
        assert r.status_code == 503
        assert r.json()["detail"] == "Map data unavailable"


# ── POST /region-intents ──────────────────────────────────────────────────────

class TestRegionIntents:
    async def test_returns_page(self, map_client):
        r = await map_client.post("/api/v1/map/region-intents", json={"region": WARSAW_REGION})
        assert r.status_code == 200
        body = r.json()
        assert [i["id"] for i in body["data"]] == ["w1", "w2", "w3"]
        assert body["meta"] == {
            "page": 1, "totalItems": 3, "totalPages": 1, "prevPage": None, "nextPage": None,
        }

    async def test_intent_is_camel_case(self, map_client):
        r = await map_client.post("/api/v1/map/region-intents", json={"region": WARSAW_REGION})
        intent = r.json()["data"][0]
        for key in ("startAt", "endAt", "joinMode", "meetingKind", "membersCount", "owner", "categories"):
            assert key in intent

    async def test_per_page_alias(self, map_client):
        body = {"region": WARSAW_REGION, "page": 2, "perPage": 2}
        data = (await map_client.post("/api/v1/map/region-intents", json=body)).json()
        assert [i["id"] for i in data["data"]] == ["w3"]
        assert data["meta"]["prevPage"] == 1
        assert data["meta"]["totalPages"] == 2

    async def test_oversized_per_page_is_clamped(self, map_client):
        body = {"region": WARSAW_REGION, "perPage": 500}
        r = await map_client.post("/api/v1/map/region-intents", json=body)
        assert r.status_code == 200
        assert r.json()["meta"]["totalPages"] == 1

    async def test_invalid_region_is_400(self, map_client, fake_store):
        r = await map_client.post("/api/v1/map/region-intents", json={"region": "not-a-valid-token-base64"})
        assert r.status_code == 400
        assert r.json()["detail"] == "Invalid region token"
        assert fake_store.calls == []

    async def test_missing_region_is_422(self, map_client):
        r = await map_client.post("/api/v1/map/region-intents", json={"page": 1})
        assert r.status_code == 422

    @pytest.mark.parametrize("page", [10**19, 10_001])
    async def test_huge_page_is_422(self, map_client, fake_store, page):
        r = await map_client.post("/api/v1/map/region-intents", json={"region": WARSAW_REGION, "page": page})
        assert r.status_code == 422
        assert fake_store.calls == []

    async def test_last_allowed_page_is_empty(self, map_client):
        r = await map_client.post("/api/v1/map/region-intents", json={"region": WARSAW_REGION, "page": 10_000})
        assert r.status_code == 200
        assert r.json()["data"] == []


# ── GET /regions/{region} ─────────────────────────────────────────────────────

class TestRegionInfo:
    async def test_decodes_token(self, client):
        r = await client.get(f"/api/v1/map/regions/{WARSAW_REGION}")
        assert r.status_code == 200
        data = r.json()
        assert (data["z"], data["x"], data["y"]) == (12, _TILE.x, _TILE.y)
        assert data["bbox"]["swLon"] < WARSAW[0] < data["bbox"]["neLon"]
        assert data["bbox"]["swLat"] < WARSAW[1] < data["bbox"]["neLat"]
        assert len(data["geoJson"]["coordinates"][0]) == 5

    async def test_bad_token_is_400(self, client):
        r = await client.get("/api/v1/map/regions/bm9wZQ")
        assert r.status_code == 400


# ── No database ───────────────────────────────────────────────────────────────

class TestWithoutDatabase:
    async def test_clusters_503(self, client):
        r = await client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})
        assert r.status_code == 503
        assert r.json()["detail"] == "Database unavailable"

    async def test_region_intents_503(self, client):
        r = await client.post("/api/v1/map/region-intents", json={"region": WARSAW_REGION})
        assert r.status_code == 503

    async def test_bad_token_is_400_not_503(self, client):
        r = await client.post("/api/v1/map/region-intents", json={"region": "not-a-valid-token-base64"})
        assert r.status_code == 400
        assert r.json()["detail"] == "Invalid region token"


# ── Rate limiting ─────────────────────────────────────────────────────────────

class TestRateLimit:
    async def test_clusters_429_when_limit_exceeded(self, map_client):
        from intentmap.core.rate_limit import limiter

        with patch.object(limiter.limiter, "hit", return_value=False):
            r = await map_client.post("/api/v1/map/clusters", json={"bbox": POLAND, "zoom": 6})

        assert r.status_code == 429
        assert "error" in r.json()

    async def test_region_intents_429_when_limit_exceeded(self, map_client):
        from intentmap.core.rate_limit import limiter

        with patch.object(limiter.limiter, "hit", return_value=False):
            r = await map_client.post("/api/v1/map/region-intents", json={"region": WARSAW_REGION})

        assert r.status_code == 429
