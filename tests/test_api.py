import pytest
from fastapi.testclient import TestClient

from src.api import app as app_module
from src.api.app import app
from src.db.cache import save_events
from src.db.database import get_db
from src.functions.client import FunctionsError
from src.models.crowd import Event, Signal

SAN_FRANCISCO = {"latitude": 37.7749, "longitude": -122.4194}


class FakeFunctionsClient:
    def __init__(self, events=None, signals=None, error=None):
        self.events = events or []
        self.signals = signals or []
        self.error = error

    def get_nearby_events(self, latitude, longitude, radius_km):
        if self.error:
            raise self.error
        return self.events

    def get_nearby_signals(self, latitude, longitude, radius_km):
        if self.error:
            raise self.error
        return self.signals


@pytest.fixture
def client(session_factory, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(app_module, "SessionLocal", session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_read_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to the Crowd Geo API"}


def test_encode(client):
    response = client.get("/geohash/encode", params=dict(SAN_FRANCISCO, precision=6))
    assert response.status_code == 200
    assert response.json() == {"geohash": "9q8yyk", "precision": 6}


@pytest.mark.parametrize("params", [
    {"latitude": 91, "longitude": 0},
    {"latitude": 0, "longitude": -181},
    {"latitude": 0, "longitude": 0, "precision": 0},
    {"latitude": 0, "longitude": 0, "precision": 13},
])
def test_encode_rejects_invalid_parameters(client, params):
    assert client.get("/geohash/encode", params=params).status_code == 422


def test_decode(client):
    response = client.get("/geohash/decode/7")
    assert response.json() == {
        "latitude": -22.5,
        "longitude": -22.5,
        "error": {"latitude": 22.5, "longitude": 22.5},
    }


def test_decode_ignores_invalid_characters(client):
    response = client.get("/geohash/decode/!!!")
    assert response.status_code == 200
    assert response.json()["latitude"] == 0.0
    assert response.json()["longitude"] == 0.0


def test_neighbors(client):
    response = client.get("/geohash/7/neighbors")
    assert response.status_code == 200
    body = response.json()
    assert list(body) == ["n", "s", "e", "w", "ne", "nw", "se", "sw"]
    assert body["n"] == "e"
    assert body["e"] == "k"


def test_neighbors_invalid_geohash(client):
    assert client.get("/geohash/9q8a/neighbors").status_code == 400


def test_spatial_query_by_radius(client):
    response = client.get("/geohash/query", params=dict(SAN_FRANCISCO, radius_km=5))
    body = response.json()
    assert body["prefix"] == "9q8yy"
    assert body["start"] == "9q8yy"
    assert body["end"] == "9q8yy\uf8ff"
    assert body["precision"] == 5
    assert len(body["cells"]) == 9


def test_spatial_query_by_precision(client):
    response = client.get("/geohash/query", params=dict(SAN_FRANCISCO, precision=6))
    assert response.json()["prefix"] == "9q8yyk"
    assert "cells" not in response.json()


def test_spatial_query_requires_precision_or_radius(client):
    assert client.get("/geohash/query", params=SAN_FRANCISCO).status_code == 400


def test_distance(client):
    params = {"lat1": 37.7749, "lon1": -122.4194, "lat2": 40.7128, "lon2": -74.0060}
    assert client.get("/distance", params=params).json()["distance_km"] == pytest.approx(4129, abs=10)


def test_precision(client):
    assert client.get("/precision", params={"radius_km": 0.15}).json()["precision"] == 7
    assert client.get("/precision", params={"radius_km": 100}).json()["precision"] == 2


def test_nearby_events_from_cache(client, session_factory):
    db = session_factory()
    save_events(db, [
        Event(id="e1", title="Rooftop party", host_id="u1", **SAN_FRANCISCO),
        Event(id="e2", title="Far away", host_id="u1", latitude=34.0522, longitude=-118.2437),
    ])
    db.close()

    response = client.get("/events/nearby", params=dict(SAN_FRANCISCO, radius_km=5))

    assert response.status_code == 200
    events = response.json()["events"]
    assert [event["id"] for event in events] == ["e1"]
    assert events[0]["hostId"] == "u1"
    assert events[0]["distance"] == 0.0


def test_sync_fills_cache(client, monkeypatch):
    fake = FakeFunctionsClient(
        events=[Event(id="e1", title="Rooftop party", host_id="u1", **SAN_FRANCISCO)],
        signals=[Signal(id="s1", user_id="u2", event_id="e1", latitude=37.775, longitude=-122.419)],
    )
    monkeypatch.setattr(app_module, "functions_client", fake)

    response = client.post("/sync", params=SAN_FRANCISCO)

    assert response.status_code == 200
    assert response.json()["status"] == "processing"
    assert [e["id"] for e in client.get("/events/nearby", params=SAN_FRANCISCO).json()["events"]] == ["e1"]
    assert [s["id"] for s in client.get("/signals/nearby", params=SAN_FRANCISCO).json()["signals"]] == ["s1"]


def test_sync_task_reports_backend_failure(session_factory, monkeypatch):
    monkeypatch.setattr(app_module, "SessionLocal", session_factory)
    monkeypatch.setattr(app_module, "functions_client", FakeFunctionsClient(error=FunctionsError("Failed to get events")))

    result = app_module.sync_nearby_task(37.7749, -122.4194, 10, 5)

    assert result == {"success": False, "error": "Failed to get events"}
