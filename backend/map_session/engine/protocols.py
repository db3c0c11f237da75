"""Protocol interfaces of the geospatial engine consumed by the session.

The session core only talks to the engine through these protocols. The
in-memory adapter backs tests and local development; the PostGIS adapter
backs production deployments. Adapters raise errors.EngineError on
failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from map_session.engine import models
    from map_session.geo import extent as geo_extent


@runtime_checkable
class FeatureClassProtocol(Protocol):
    """A named, schema'd collection of features sharing a geometry type."""

    @property
    def name(self) -> str: ...

    @property
    def fields(self) -> Sequence[models.FieldSpec]: ...

    def create_feature(self) -> models.Feature: ...

    def insert_feature(self, feature: models.Feature) -> int: ...

    def feature_count(self) -> int: ...

    def features(self) -> Iterable[models.PersistedFeature]: ...


class FeatureStoreProtocol(Protocol):
    """A persistent container of feature classes."""

    def create_feature_class(
        self,
        name: str,
        geometry_type: models.GeometryType,
        fields: Sequence[models.FieldSpec],
        options: Mapping[str, str],
    ) -> FeatureClassProtocol: ...

    def get_feature_class(self, name: str) -> FeatureClassProtocol | None: ...


class MapDocumentProtocol(Protocol):
    """Top-level container owning a layer list and its configuration."""

    @property
    def name(self) -> str: ...

    @property
    def layer_count(self) -> int: ...

    @property
    def layers(self) -> Sequence[models.LayerRef]: ...

    def set_options(self, options: Mapping[str, str]) -> None: ...

    def set_extent_limits(
        self, min_x: float, min_y: float, max_x: float, max_y: float
    ) -> None: ...

    def add_layer(self, name: str, data_source: object) -> models.LayerRef: ...

    def remove_layer(self, layer: models.LayerRef) -> None: ...

    def save(self) -> None: ...

    def close(self) -> None: ...


class MapViewProtocol(Protocol):
    """A renderable view the session binds its map document to."""

    frozen: bool
    scale: float
    center: models.Point

    def set_map(self, document: MapDocumentProtocol | None) -> None: ...


class TileSourceFactoryProtocol(Protocol):
    def create_tms(
        self,
        name: str,
        url_template: str,
        srid: int,
        min_zoom: int,
        max_zoom: int,
        full_extent: geo_extent.SpatialExtent,
        limit_extent: geo_extent.SpatialExtent,
        cache_expires: int,
    ) -> models.TileSource: ...


class EngineProtocol(Protocol):
    """Entry point of an engine backend."""

    @property
    def tile_factory(self) -> TileSourceFactoryProtocol: ...

    def get_map(self, name: str) -> MapDocumentProtocol: ...

    def get_store(self, name: str) -> FeatureStoreProtocol: ...
