"""In-process geospatial engine for tests and local development.

Map documents and feature stores live in the engine object and survive a
document close/reopen, which mirrors the durability contract of a real
engine:

- Features are durable as soon as they are inserted.
- A map document's layers, options and extent limits are only visible to
  a later ``get_map`` call after ``save()``; unsaved changes are lost when
  the handle is dropped.

Data is lost when the engine object is garbage collected.
"""

from __future__ import annotations

import copy
import dataclasses
import datetime
import logging
from typing import TYPE_CHECKING

from map_session.core import errors
from map_session.engine import models, tiles

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

CURRENT_TIMESTAMP = "CURRENT_TIMESTAMP"


class InMemoryFeatureClass:
    """Feature class holding its features in a list, ids start at 1."""

    def __init__(
        self,
        name: str,
        geometry_type: models.GeometryType,
        fields: Sequence[models.FieldSpec],
        options: Mapping[str, str],
    ) -> None:
        self._name = name
        self.geometry_type = geometry_type
        self._fields = tuple(fields)
        self.options = dict(options)
        self._features: list[models.PersistedFeature] = []
        self._next_id = 1

    @property
    def name(self) -> str:
        return self._name

    @property
    def fields(self) -> Sequence[models.FieldSpec]:
        return self._fields

    def create_feature(self) -> models.Feature:
        return models.Feature(field_count=len(self._fields))

    def insert_feature(self, feature: models.Feature) -> int:
        """Persist a feature and return its store-assigned id.

        Raises:
            EngineError: if the feature has no geometry.
        """
        if feature.geometry is None:
            raise errors.EngineError(f"Feature for {self._name} has no geometry")
        values: dict[str, models.FieldValue] = {}
        for index, spec in enumerate(self._fields):
            value = feature.values.get(index)
            if value is None and spec.default == CURRENT_TIMESTAMP:
                value = datetime.datetime.now(tz=datetime.UTC)
            values[spec.name] = value
        feature_id = self._next_id
        self._next_id += 1
        self._features.append(
            models.PersistedFeature(
                id=feature_id, geometry=feature.geometry, fields=values
            )
        )
        return feature_id

    def feature_count(self) -> int:
        return len(self._features)

    def features(self) -> Iterable[models.PersistedFeature]:
        return tuple(self._features)


class InMemoryFeatureStore:
    """Named container of feature classes."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._classes: dict[str, InMemoryFeatureClass] = {}

    def create_feature_class(
        self,
        name: str,
        geometry_type: models.GeometryType,
        fields: Sequence[models.FieldSpec],
        options: Mapping[str, str],
    ) -> InMemoryFeatureClass:
        """Create a feature class, replacing any class with the same name."""
        if name in self._classes:
            logger.warning("Replacing existing feature class %s", name)
        feature_class = InMemoryFeatureClass(name, geometry_type, fields, options)
        self._classes[name] = feature_class
        return feature_class

    def get_feature_class(self, name: str) -> InMemoryFeatureClass | None:
        return self._classes.get(name)


@dataclasses.dataclass
class _DocumentSnapshot:
    options: dict[str, str] = dataclasses.field(default_factory=dict)
    extent_limits: tuple[float, float, float, float] | None = None
    layers: list[models.LayerRef] = dataclasses.field(default_factory=list)


class InMemoryMapDocument:
    """Working copy of a saved map document."""

    def __init__(self, name: str, engine: InMemoryEngine) -> None:
        self._name = name
        self._engine = engine
        snapshot = engine._saved.get(name, _DocumentSnapshot())
        self.options = dict(snapshot.options)
        self.extent_limits = snapshot.extent_limits
        self._layers = [copy.copy(layer) for layer in snapshot.layers]
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def layer_count(self) -> int:
        return len(self._layers)

    @property
    def layers(self) -> Sequence[models.LayerRef]:
        return tuple(self._layers)

    def _check_open(self) -> None:
        if self.closed:
            raise errors.EngineError(f"Map document {self._name} is closed")

    def set_options(self, options: Mapping[str, str]) -> None:
        self._check_open()
        self.options.update(options)

    def set_extent_limits(
        self, min_x: float, min_y: float, max_x: float, max_y: float
    ) -> None:
        self._check_open()
        self.extent_limits = (min_x, min_y, max_x, max_y)

    def add_layer(self, name: str, data_source: object) -> models.LayerRef:
        self._check_open()
        layer = models.LayerRef(name=name, data_source=data_source)
        self._layers.append(layer)
        return layer

    def remove_layer(self, layer: models.LayerRef) -> None:
        self._check_open()
        self._layers = [kept for kept in self._layers if kept is not layer]

    def save(self) -> None:
        self._check_open()
        self._engine._saved[self._name] = _DocumentSnapshot(
            options=dict(self.options),
            extent_limits=self.extent_limits,
            layers=[copy.copy(layer) for layer in self._layers],
        )
        logger.debug("Map document %s saved", self._name)

    def close(self) -> None:
        self.closed = True


class InMemoryEngine:
    """Engine entry point holding saved documents and feature stores."""

    def __init__(self, data_dir: pathlib.Path) -> None:
        self._saved: dict[str, _DocumentSnapshot] = {}
        self._stores: dict[str, InMemoryFeatureStore] = {}
        self._tile_factory = tiles.TileSourceFactory(data_dir)

    @property
    def tile_factory(self) -> tiles.TileSourceFactory:
        return self._tile_factory

    def get_map(self, name: str) -> InMemoryMapDocument:
        """Open (or create on first use) the map document ``name``."""
        return InMemoryMapDocument(name, self)

    def get_store(self, name: str) -> InMemoryFeatureStore:
        """Get or create the feature store ``name``."""
        if name not in self._stores:
            self._stores[name] = InMemoryFeatureStore(name)
        return self._stores[name]
