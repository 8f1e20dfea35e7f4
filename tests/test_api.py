from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import Recorder, chargenow_cabinet

from app.main import app
from app.routers import set_admin_api_key, set_station_manager

ADMIN_KEY = "admin-secret"


def _energo(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/cabinet"):
        if request.url.params["cabinetId"] == "CUBTMISSING":
            return httpx.Response(200, json={"content": []})
        return httpx.Response(200, json={"content": [{"positionInfo": {"returnNum": 6, "borrowNum": 1}}]})

    battery = request.url.params["deviceid"]
    if battery == "RL3D52000012":
        return httpx.Response(200, json={"content": [{"starttime": 1700000000000, "returnTime": 0, "orderNo": "E-9"}]})
    return httpx.Response(200, json={"content": []})


def _chargenow(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/order/list"):
        return httpx.Response(
            200,
            json={"page": {"records": [{"pBatteryid": "B1", "pBorrowtime": "2025-01-28 10:00:00"}],
                           "current": 1, "size": 20, "total": 1, "pages": 1}},
        )
    if request.url.params["deviceId"] == "DTN00970":
        return httpx.Response(500)
    return httpx.Response(200, json=chargenow_cabinet(empty=2, busy=7))


@pytest.fixture
def client(make_manager):
    manager = make_manager(
        Recorder(_chargenow),
        Recorder(_energo),
        station_ids=["DTN00872", "DTN00970", "CUBT0001"],
    )
    set_station_manager(manager)
    set_admin_api_key(ADMIN_KEY)
    yield TestClient(app)
    set_station_manager(None)
    set_admin_api_key(None)


def test_health_and_root(client) -> None:
    assert client.get("/health").json()["status"] == "healthy"
    assert "stations" in client.get("/").json()["endpoints"]


def test_stations_lists_configured_ids_with_catalogue_info(client) -> None:
    resp = client.get("/api/stations")
    assert resp.status_code == 200
    stations = resp.json()

    assert [s["id"] for s in stations] == ["DTN00872", "DTN00970", "CUBT0001"]
    assert stations[0]["name"] == "DePaul LP Student Center"
    assert (stations[0]["available"], stations[0]["occupied"]) == (2, 7)
    assert stations[1]["error"] is True
    assert stations[2]["name"] == "Station CUBT0001"
    assert stations[2]["coordinates"] == [0.0, 0.0]
    assert stations[2]["available"] == 6


def test_single_station(client) -> None:
    ok = client.get("/api/stations/DTN00872")
    assert ok.status_code == 200
    assert ok.json()["available"] == 2
    assert "raw_data" not in ok.json()

    assert client.get("/api/stations/DTN00970").status_code == 502
    assert client.get("/api/stations/CUBTMISSING").status_code == 404
    assert client.get("/api/stations/bad!id").status_code == 400


def test_battery_lookup(client) -> None:
    resp = client.get("/api/battery/RL3D52000012")
    assert resp.status_code == 200
    body = resp.json()
    assert body["pBatteryid"] == "RL3D52000012"
    assert body["pBorrowtime"].startswith("2023-11-14T22:13:20")
    assert body["pGhtime"] is None
    assert body["orderNo"] == "E-9"

    assert client.get("/api/battery/UNKNOWN1").status_code == 404
    assert client.get("/api/battery/bad!id").status_code == 400


def test_orders_page(client) -> None:
    resp = client.get("/api/orders", params={"page": 1, "limit": 20})
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"][0]["pBatteryid"] == "B1"
    assert body["pagination"]["total"] == 1

    assert client.get("/api/orders", params={"limit": 500}).status_code == 422


def test_locations(client) -> None:
    ids = [loc["id"] for loc in client.get("/api/locations").json()]
    assert "DTN00872" in ids


def test_admin_requires_api_key(client) -> None:
    assert client.get("/api/admin/energo-token").status_code == 401
    assert client.get("/api/admin/energo-token", headers={"x-api-key": "wrong"}).status_code == 401
    assert client.post("/api/admin/energo-token", json={"token": "x"}).status_code == 401


def test_admin_disabled_without_configured_key(client) -> None:
    set_admin_api_key(None)
    resp = client.get("/api/admin/energo-token", headers={"x-api-key": ADMIN_KEY})
    assert resp.status_code == 503


def test_admin_updates_token(client, token_store) -> None:
    headers = {"x-api-key": ADMIN_KEY}

    resp = client.post("/api/admin/energo-token", json={"token": "  brand-new-token  "}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["has_token"] is True
    assert resp.json()["token_preview"].endswith("oken")
    assert token_store.get() == "brand-new-token"

    assert client.post("/api/admin/energo-token", json={"token": "   "}, headers=headers).status_code == 400
    assert client.post("/api/admin/energo-token", json={}, headers=headers).status_code == 422


def test_admin_cache_clear_and_health(client) -> None:
    headers = {"x-api-key": ADMIN_KEY}
    client.get("/api/stations/DTN00872")

    cleared = client.post("/api/admin/cache/clear", headers=headers).json()
    assert cleared["cleared"] == 1

    assert client.get("/api/admin/health", headers=headers).json() == {"chargenow": True}


def test_routes_fail_cleanly_before_startup() -> None:
    set_station_manager(None)
    resp = TestClient(app).get("/api/stations")
    assert resp.status_code == 500
