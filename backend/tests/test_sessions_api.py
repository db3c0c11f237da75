"""API endpoint tests for the map session lifecycle endpoints.

Each test builds the application with dependency overrides so that the
engine and the session registry are fresh in-memory instances, which
keeps tests isolated and free of any database.

See Also:
    - backend/map_session/api/sessions.py
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi import testclient

from map_session import main
from map_session.api import sessions as api_sessions
from map_session.core import config, errors
from map_session.engine import memory, models

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterator


@pytest.fixture
def client(tmp_path: pathlib.Path) -> Iterator[testclient.TestClient]:
    settings = config.Settings(data_dir=tmp_path / "data")
    engine = memory.InMemoryEngine(settings.data_dir)
    sessions = api_sessions.registry.SessionRegistry()
    app = main.create_app()
    app.dependency_overrides[config.get_settings] = lambda: settings
    app.dependency_overrides[api_sessions.get_engine] = lambda: engine
    app.dependency_overrides[api_sessions.get_registry] = lambda: sessions
    try:
        yield testclient.TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_start_bootstraps_and_activates(client: testclient.TestClient) -> None:
    response = client.post("/api/sessions/main/start", json={"memory_mb": 768})
    assert response.status_code == 200
    body = response.json()
    assert body["map_id"] == "main"
    assert body["state"] == "active"
    assert body["outcome"] == "created"
    assert body["profile"] == {
        "total_device_memory_mb": 768,
        "reduce_factor": 2.0,
        "zoom_increment": -1,
    }
    assert [layer["name"] for layer in body["layers"]] == ["Points", "OSM"]


def test_start_twice_finds_live_session(client: testclient.TestClient) -> None:
    client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    response = client.post(
        "/api/sessions/main/start",
        json={"view_state": {"scale": 5e-6, "center_x": 1.0, "center_y": 2.0}},
    )
    assert response.json()["outcome"] == "found"
    state = client.get("/api/sessions/main/view-state").json()
    assert state == {"scale": 5e-6, "center_x": 1.0, "center_y": 2.0}


def test_start_restores_view_state(client: testclient.TestClient) -> None:
    client.post(
        "/api/sessions/main/start",
        json={
            "memory_mb": 2048,
            "view_state": {"scale": 3e-6, "center_x": -10.0, "center_y": 20.0},
        },
    )
    state = client.get("/api/sessions/main/view-state").json()
    assert state == {"scale": 3e-6, "center_x": -10.0, "center_y": 20.0}


def test_view_state_defaults(client: testclient.TestClient) -> None:
    client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    state = client.get("/api/sessions/main/view-state").json()
    assert state == {"scale": 1.5e-6, "center_x": 0.0, "center_y": 0.0}


def test_restore_and_zoom(client: testclient.TestClient) -> None:
    client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    response = client.put(
        "/api/sessions/main/view-state",
        json={"scale": 1e-6, "center_x": 5.0, "center_y": 6.0},
    )
    assert response.json() == {"applied": True}
    assert client.post("/api/sessions/main/zoom-in").json()["scale"] == 2e-6
    assert client.post("/api/sessions/main/zoom-out").json()["scale"] == 1e-6


def test_features_listed_in_input_order(client: testclient.TestClient) -> None:
    client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    features = client.get("/api/sessions/main/features").json()
    assert [f["fields"]["name"] for f in features] == [
        "Moscow",
        "London",
        "Washington",
        "Beijing",
    ]
    assert features[0]["x"] == pytest.approx(4187468.2, abs=5.0)


def test_unknown_session(client: testclient.TestClient) -> None:
    assert client.get("/api/sessions/main").status_code == 404
    assert client.get("/api/sessions/main/view-state").status_code == 404
    assert client.get("/api/sessions/main/features").status_code == 404


def test_invalid_map_id(client: testclient.TestClient) -> None:
    response = client.post("/api/sessions/bad-id!/start", json={})
    assert response.status_code == 400


def test_teardown_then_restart_loads(client: testclient.TestClient) -> None:
    client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    assert client.delete("/api/sessions/main").json() == {"status": "closed"}
    assert client.delete("/api/sessions/main").status_code == 200
    assert client.get("/api/sessions/main").status_code == 404

    response = client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    assert response.json()["state"] == "active"
    assert response.json()["outcome"] == "created"
    features = client.get("/api/sessions/main/features").json()
    assert len(features) == 4


def test_bootstrap_failure_surfaced(
    monkeypatch: pytest.MonkeyPatch, client: testclient.TestClient
) -> None:
    def fail(self: memory.InMemoryFeatureClass, feature: models.Feature) -> int:
        raise errors.EngineError("insert failed")

    monkeypatch.setattr(memory.InMemoryFeatureClass, "insert_feature", fail)
    response = client.post("/api/sessions/main/start", json={"memory_mb": 2048})
    assert response.status_code == 500
    assert "insert failed" in response.json()["detail"]
    assert client.get("/api/sessions/main").status_code == 404
