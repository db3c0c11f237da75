"""Unit tests for the MapSession state machine.

Covers configuration, the bootstrap-or-load decision, the shared extent
instance, view binding with the freeze flag, the points feature class
lookup chain, failed bootstraps and close semantics. The in-memory engine
stands in for the geospatial engine; recording fakes capture calls where
identity matters.

See Also:
    - backend/map_session/session/map_session.py
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from map_session.core import config, errors
from map_session.engine import memory, models, tiles
from map_session.geo import extent as geo_extent
from map_session.session import map_session, view, view_state

if TYPE_CHECKING:
    import pathlib


def _settings(tmp_path: pathlib.Path) -> config.Settings:
    return config.Settings(data_dir=tmp_path / "data")


def _session(
    engine: memory.InMemoryEngine, tmp_path: pathlib.Path
) -> map_session.MapSession:
    return map_session.MapSession("main", engine, _settings(tmp_path))


def _points_count(engine: memory.InMemoryEngine) -> int:
    feature_class = engine.get_store("store").get_feature_class("points")
    assert feature_class is not None
    return feature_class.feature_count()


def test_configure_applies_profile_and_extent(tmp_path: pathlib.Path) -> None:
    engine = memory.InMemoryEngine(tmp_path)
    session = _session(engine, tmp_path)
    profile = session.configure(768)
    assert session.state is map_session.SessionState.CONFIGURED
    assert profile.reduce_factor == 2.0
    document = session.document
    assert isinstance(document, memory.InMemoryMapDocument)
    assert document.options == {
        "ZOOM_INCREMENT": "-1",
        "VIEWPORT_REDUCE_FACTOR": "2.0",
    }
    assert document.extent_limits == geo_extent.WEB_MERCATOR_EXTENT.as_limits()


def test_configure_failure_is_configuration_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> None:
    engine = memory.InMemoryEngine(tmp_path)

    def reject(self: memory.InMemoryMapDocument, options: Any) -> None:
        raise errors.EngineError("bad option")

    monkeypatch.setattr(memory.InMemoryMapDocument, "set_options", reject)
    session = _session(engine, tmp_path)
    with pytest.raises(errors.ConfigurationError):
        session.configure(2048)
    assert session.state is map_session.SessionState.UNINITIALIZED


def test_configure_failure_closes_document(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> None:
    engine = memory.InMemoryEngine(tmp_path)
    opened: list[memory.InMemoryMapDocument] = []
    original_get_map = engine.get_map

    def recording_get_map(name: str) -> memory.InMemoryMapDocument:
        document = original_get_map(name)
        opened.append(document)
        return document

    def reject(self: memory.InMemoryMapDocument, *limits: float) -> None:
        raise errors.EngineError("bad limits")

    monkeypatch.setattr(engine, "get_map", recording_get_map)
    monkeypatch.setattr(memory.InMemoryMapDocument, "set_extent_limits", reject)
    session = _session(engine, tmp_path)
    with pytest.raises(errors.ConfigurationError, match="bad limits"):
        session.configure(2048)
    assert session.document is None
    assert [document.closed for document in opened] == [True]


def test_configure_twice_is_misuse(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    session.configure(2048)
    with pytest.raises(errors.SessionNotConfigured):
        session.configure(2048)


def test_empty_map_is_bootstrapped(tmp_path: pathlib.Path) -> None:
    engine = memory.InMemoryEngine(tmp_path)
    session = _session(engine, tmp_path)
    session.configure(2048)
    assert session.bootstrap_or_load() is map_session.SessionState.BOOTSTRAPPED
    assert [layer.name for layer in session.layers] == ["Points", "OSM"]
    points = session.layers[0]
    assert points.style_name == "pointsLayer"
    assert points.style == {"color": "#00be78", "size": 8.0, "type": 6}
    assert _points_count(engine) == 4
    assert (tmp_path / "data" / "osm.wconn").exists()
    # saved: a fresh handle already sees the layers
    assert engine.get_map("main").layer_count == 2


def test_bootstrap_runs_once_per_map(tmp_path: pathlib.Path) -> None:
    """A second open takes the load path and never re-ingests."""
    engine = memory.InMemoryEngine(tmp_path)
    first = _session(engine, tmp_path)
    first.configure(2048)
    first.bootstrap_or_load()
    first.close()
    assert _points_count(engine) == 4

    second = _session(engine, tmp_path)
    second.configure(2048)
    assert second.bootstrap_or_load() is map_session.SessionState.LOADED
    assert second.document is not None
    assert second.document.layer_count == 2
    assert _points_count(engine) == 4


def test_bootstrap_requires_configuration(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    with pytest.raises(errors.SessionNotConfigured):
        session.bootstrap_or_load()


class RecordingDocument(memory.InMemoryMapDocument):
    limits: tuple[float, ...] | None = None

    def set_extent_limits(self, *limits: float) -> None:  # type: ignore[override]
        self.limits = limits
        super().set_extent_limits(*limits)


class RecordingTileFactory(tiles.TileSourceFactory):
    def create_tms(self, *args: Any) -> models.TileSource:  # type: ignore[override]
        self.args = args
        return super().create_tms(*args)


def test_extent_shared_by_limits_and_tiles(tmp_path: pathlib.Path) -> None:
    """Pan limits and tile coverage come from one extent instance."""
    engine = memory.InMemoryEngine(tmp_path)
    factory = RecordingTileFactory(tmp_path / "data")
    engine._tile_factory = factory
    documents: list[RecordingDocument] = []

    def get_map(name: str) -> RecordingDocument:
        document = RecordingDocument(name, engine)
        documents.append(document)
        return document

    engine.get_map = get_map  # type: ignore[method-assign]
    extent = geo_extent.SpatialExtent(-100.0, -50.0, 100.0, 50.0)
    session = map_session.MapSession(
        "main", engine, _settings(tmp_path), extent=extent
    )
    session.configure(2048)
    session.bootstrap_or_load()

    full_extent, limit_extent = factory.args[5], factory.args[6]
    assert full_extent is extent
    assert limit_extent is extent
    assert documents[0].limits == extent.as_limits()
    assert documents[0].limits == full_extent.as_limits()


def test_failed_ingestion_leaves_map_empty(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> None:
    """A failed batch is retried by the next session, not half-kept."""
    engine = memory.InMemoryEngine(tmp_path)
    original_insert = memory.InMemoryFeatureClass.insert_feature
    calls = {"n": 0}

    def flaky_insert(
        self: memory.InMemoryFeatureClass, feature: models.Feature
    ) -> int:
        calls["n"] += 1
        if calls["n"] == 3:
            raise errors.EngineError("insert failed")
        return original_insert(self, feature)

    monkeypatch.setattr(memory.InMemoryFeatureClass, "insert_feature", flaky_insert)
    session = _session(engine, tmp_path)
    session.configure(2048)
    with pytest.raises(errors.IngestionFailure):
        session.bootstrap_or_load()
    assert session.state is map_session.SessionState.CONFIGURED
    assert session.layers == ()
    session.close()
    assert engine.get_map("main").layer_count == 0

    monkeypatch.setattr(
        memory.InMemoryFeatureClass, "insert_feature", original_insert
    )
    retry = _session(engine, tmp_path)
    retry.configure(2048)
    assert retry.bootstrap_or_load() is map_session.SessionState.BOOTSTRAPPED
    assert _points_count(engine) == 4


def test_failed_save_rolls_back_attached_layers(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> None:
    """A save failure after the layers were attached leaves no layers."""
    engine = memory.InMemoryEngine(tmp_path)
    original_save = memory.InMemoryMapDocument.save

    def failing_save(self: memory.InMemoryMapDocument) -> None:
        raise errors.EngineError("disk full")

    monkeypatch.setattr(memory.InMemoryMapDocument, "save", failing_save)
    session = _session(engine, tmp_path)
    session.configure(2048)
    with pytest.raises(errors.ConfigurationError, match="disk full"):
        session.bootstrap_or_load()
    assert session.state is map_session.SessionState.CONFIGURED
    assert session.layers == ()
    assert session.points_feature_class() is None
    with pytest.raises(errors.SessionNotConfigured):
        session.activate(view.MapView())

    monkeypatch.setattr(memory.InMemoryMapDocument, "save", original_save)
    assert session.bootstrap_or_load() is map_session.SessionState.BOOTSTRAPPED
    assert [layer.name for layer in session.layers] == ["Points", "OSM"]
    session.close()
    assert engine.get_map("main").layer_count == 2
    assert _points_count(engine) == 4


def test_unsupported_reference_aborts_bootstrap(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> None:
    monkeypatch.setattr(map_session, "SOURCE_SRID", 999999)
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    session.configure(2048)
    with pytest.raises(errors.UnsupportedSpatialReference):
        session.bootstrap_or_load()
    assert session.layers == ()


def test_activate_unfreezes_after_binding(
    monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path
) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    session.configure(2048)
    session.bootstrap_or_load()
    map_view = view.MapView()
    assert map_view.frozen
    frozen_while_applying: list[bool] = []
    original_apply = view_state.apply

    def spy_apply(s: map_session.MapSession, state: view_state.ViewState) -> bool:
        frozen_while_applying.append(map_view.frozen)
        return original_apply(s, state)

    monkeypatch.setattr(view_state, "apply", spy_apply)
    session.activate(map_view, view_state.ViewState(3e-6, 10.0, 20.0))
    assert frozen_while_applying == [True]
    assert not map_view.frozen
    assert map_view.document is session.document
    assert map_view.scale == 3e-6
    assert map_view.center == models.Point(10.0, 20.0)
    assert session.state is map_session.SessionState.ACTIVE


def test_activate_before_bootstrap_is_misuse(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    session.configure(2048)
    with pytest.raises(errors.SessionNotConfigured):
        session.activate(view.MapView())


def test_second_view_replaces_first(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    session.configure(2048)
    session.bootstrap_or_load()
    first, second = view.MapView(), view.MapView()
    session.activate(first)
    session.activate(second)
    assert session.view is second
    assert first.frozen
    assert first.document is None


def test_view_not_bound(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    with pytest.raises(errors.ViewNotBound):
        _ = session.view


def test_points_feature_class_lookup(tmp_path: pathlib.Path) -> None:
    engine = memory.InMemoryEngine(tmp_path)
    session = _session(engine, tmp_path)
    assert session.points_feature_class() is None
    session.configure(2048)
    assert session.points_feature_class() is None
    session.bootstrap_or_load()
    feature_class = session.points_feature_class()
    assert feature_class is engine.get_store("store").get_feature_class("points")


def test_points_layer_not_backed_by_feature_class(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    session.configure(2048)
    assert session.document is not None
    session.document.add_layer("Points", "not a feature class")
    assert session.points_feature_class() is None


def test_close_saves_and_is_idempotent(tmp_path: pathlib.Path) -> None:
    engine = memory.InMemoryEngine(tmp_path)
    session = _session(engine, tmp_path)
    session.configure(2048)
    session.bootstrap_or_load()
    map_view = view.MapView()
    session.activate(map_view)
    session.close()
    assert session.state is map_session.SessionState.CLOSED
    assert map_view.frozen
    document = session.document
    assert isinstance(document, memory.InMemoryMapDocument)
    assert document.closed
    session.close()
    assert session.state is map_session.SessionState.CLOSED


def test_close_without_features_still_saves(tmp_path: pathlib.Path) -> None:
    """A configured map with no layers is still persisted on close."""
    engine = memory.InMemoryEngine(tmp_path)
    session = _session(engine, tmp_path)
    session.configure(512)
    session.close()
    reopened = engine.get_map("main")
    assert reopened.layer_count == 0
    assert reopened.options["VIEWPORT_REDUCE_FACTOR"] == "2.0"


def test_close_before_configure_is_misuse(tmp_path: pathlib.Path) -> None:
    session = _session(memory.InMemoryEngine(tmp_path), tmp_path)
    with pytest.raises(errors.SessionNotConfigured):
        session.close()
