from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from shoproute.main import create_app
from shoproute.models.domain import Coordinate
from shoproute.services.geospatial import direct_distance
from shoproute.services.routing.errors import ProviderUnavailable
from shoproute.services.routing.models import RouteResult


class DummyRouting:
    async def route(self, points, *, alternatives=False):
        distance = 1.25 * sum(direct_distance(a, b) for a, b in zip(points, points[1:]))
        return RouteResult(geometry=tuple(points), distance_meters=distance, duration_seconds=distance / 13.9)


class OfflineRouting:
    async def route(self, points, *, alternatives=False):
        raise ProviderUnavailable("offline")


@pytest.fixture(autouse=True)
def reset_state():
    from shoproute.data.shops_repository import load_shops
    from shoproute.services.routing import service as routing_service

    load_shops.cache_clear()
    routing_service.sessions.clear()
    yield
    load_shops.cache_clear()
    routing_service.sessions.clear()


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    from shoproute.services.routing import service as routing_service

    monkeypatch.setattr(routing_service, "get_routing_client", lambda: DummyRouting())
    return TestClient(create_app())


def _plan_payload(**overrides) -> dict:
    payload = {
        "session_id": "session-1",
        "origin": {"latitude": 24.7136, "longitude": 46.6753},
        "destinations": [{"id": "S1", "label": "Corner Market", "latitude": 24.7400, "longitude": 46.7000}],
        "waypoints": [
            {"id": "S3", "latitude": 24.7350, "longitude": 46.6950},
            {"id": "S2", "latitude": 24.7200, "longitude": 46.6800},
        ],
    }
    payload.update(overrides)
    return payload


def test_root_and_health(api_client: TestClient):
    assert api_client.get("/").json()["status"] == "running"
    assert api_client.get("/api/health").json() == {"status": "ok"}


def test_plan_select_and_export(api_client: TestClient):
    response = api_client.post("/api/routes/plan", json=_plan_payload())

    assert response.status_code == 200
    payload = response.json()
    assert payload["session_id"] == "session-1"
    assert payload["selected_id"] is None
    ranks = sorted(candidate["rank"] for candidate in payload["candidates"])
    assert ranks == list(range(1, len(payload["candidates"]) + 1))
    recommended = [c for c in payload["candidates"] if c["recommended"]]
    assert len(recommended) == 1
    assert recommended[0]["id"] == payload["recommended_id"]
    assert recommended[0]["strategy"] == "optimal_multi_stop"
    assert recommended[0]["visit_order"] == ["origin", "S2", "S3", "S1"]
    assert payload["solver"]["exhaustive"] is True

    selected = api_client.post("/api/routes/sessions/session-1/select", json={"candidate_id": recommended[0]["id"]})
    assert selected.status_code == 200
    assert selected.json()["selected_id"] == recommended[0]["id"]

    current = api_client.get("/api/routes/sessions/session-1/selection")
    assert current.json()["candidate"]["name"] == recommended[0]["name"]

    geojson = api_client.get("/api/routes/sessions/session-1/export")
    assert geojson.status_code == 200
    collection = geojson.json()
    assert collection["type"] == "FeatureCollection"
    assert collection["metadata"]["selected_id"] == recommended[0]["id"]
    first = collection["features"][0]["geometry"]["coordinates"][0]
    assert first == [46.6753, 24.7136]

    csv_export = api_client.get("/api/routes/sessions/session-1/export", params={"format": "csv"})
    assert csv_export.status_code == 200
    assert csv_export.text.splitlines()[0].startswith("rank,id,name,strategy")


def test_select_unknown_candidate_returns_404(api_client: TestClient):
    api_client.post("/api/routes/plan", json=_plan_payload())

    assert api_client.post("/api/routes/sessions/session-1/select", json={"candidate_id": 99}).status_code == 404
    assert api_client.post("/api/routes/sessions/nope/select", json={"candidate_id": 1}).status_code == 404


def test_plan_without_origin_is_rejected(api_client: TestClient):
    response = api_client.post("/api/routes/plan", json=_plan_payload(origin=None))

    assert response.status_code == 422
    assert response.json()["detail"]["success"] is False


def test_plan_with_invalid_coordinates_is_rejected(api_client: TestClient):
    payload = _plan_payload(origin={"latitude": 120, "longitude": 46.6})
    assert api_client.post("/api/routes/plan", json=payload).status_code == 422


def test_get_route_falls_back_to_direct_line(monkeypatch: pytest.MonkeyPatch):
    from shoproute.services.routing import service as routing_service

    monkeypatch.setattr(routing_service, "get_routing_client", lambda: OfflineRouting())
    client = TestClient(create_app())

    response = client.post(
        "/api/routes/get-route",
        json={"user_latitude": 0, "user_longitude": 0, "shop_latitude": 0, "shop_longitude": 1},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["main"]["strategy"] == "direct"
    assert payload["data"]["alternatives"] == []
    assert payload["meta"] == {"total_routes": 1, "has_alternatives": False, "degraded": True}
    expected = direct_distance(Coordinate(0, 0), Coordinate(0, 1))
    assert payload["data"]["main"]["distance_meters"] == pytest.approx(expected)


def test_get_route_returns_road_route(api_client: TestClient):
    response = api_client.post(
        "/api/routes/get-route",
        json={"user_latitude": 24.7136, "user_longitude": 46.6753, "shop_latitude": 24.74, "shop_longitude": 46.70},
    )

    payload = response.json()
    assert payload["data"]["main"]["strategy"] == "routed"
    assert payload["meta"]["has_alternatives"] is True
    assert payload["data"]["main"]["polyline"]
    # two detour routes top the set up to three road routes
    assert [alt["strategy"] for alt in payload["data"]["alternatives"]] == ["routed", "routed"]
    assert payload["data"]["main"]["name"] == "Road route"


def test_shop_endpoints(api_client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    from shoproute.config import settings

    shops_file = tmp_path / "shops.csv"
    shops_file.write_text(
        "id,name,latitude,longitude\nS1,Corner Market,24.7136,46.6753\nS2,Olaya Bakery,24.7000,46.6800\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(settings, "shops_file", shops_file)

    nearest = api_client.post("/api/shops/nearest", json={"latitude": 24.7136, "longitude": 46.6753, "radius": 5})
    assert nearest.status_code == 200
    body = nearest.json()
    assert [shop["id"] for shop in body["data"]] == ["S1", "S2"]
    assert body["meta"]["total"] == 2

    polygon = [
        {"latitude": 24.71, "longitude": 46.67},
        {"latitude": 24.72, "longitude": 46.67},
        {"latitude": 24.72, "longitude": 46.68},
        {"latitude": 24.71, "longitude": 46.68},
    ]
    in_area = api_client.post("/api/shops/in-area", json={"polygon": polygon})
    assert in_area.status_code == 200
    assert [shop["id"] for shop in in_area.json()["data"]] == ["S1"]

    assert api_client.get("/api/health/shops").json()["shops_count"] == 2


def test_shop_endpoints_without_catalogue(api_client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    from shoproute.config import settings

    monkeypatch.setattr(settings, "shops_file", tmp_path / "missing.csv")

    response = api_client.post("/api/shops/nearest", json={"latitude": 24.7, "longitude": 46.6})
    assert response.status_code == 503


def test_get_route_resolves_shop_id_from_catalogue(api_client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    from shoproute.config import settings

    shops_file = tmp_path / "shops.csv"
    shops_file.write_text("id,name,latitude,longitude\nS1,Corner Market,24.7400,46.7000\n", encoding="utf-8")
    monkeypatch.setattr(settings, "shops_file", shops_file)
    user = {"user_latitude": 24.7136, "user_longitude": 46.6753}

    response = api_client.post("/api/routes/get-route", json={**user, "shop_id": "S1"})
    assert response.status_code == 200
    main = response.json()["data"]["main"]
    assert main["visit_order"] == ["origin", "S1"]
    assert main["geometry"][-1] == [24.74, 46.70]

    assert api_client.post("/api/routes/get-route", json={**user, "shop_id": "S9"}).status_code == 404
    assert api_client.post("/api/routes/get-route", json=user).status_code == 422
