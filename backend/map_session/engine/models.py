"""Data models exchanged with the geospatial engine.

This module defines the value types the session core hands to, and gets
back from, the engine adapters: points, field layouts, feature entities,
layer references and tile sources. Coordinates of persisted geometries are
always in the target spatial reference (EPSG:3857).

Example:
    Describe a points layer and its style:
        >>> from map_session.engine.models import LayerRef
        >>> layer = LayerRef(
        ...     name="Points",
        ...     data_source=feature_class,
        ...     style_name="pointsLayer",
        ...     style={"color": "#00be78", "size": 8.0, "type": 6},
        ... )
"""

from __future__ import annotations

import dataclasses
import datetime
import enum
from typing import Any

FieldValue = float | int | str | datetime.datetime | None


@dataclasses.dataclass(frozen=True)
class Point:
    """A planar coordinate pair in some spatial reference."""

    x: float
    y: float


class FieldType(enum.StrEnum):
    """Attribute field types understood by every engine adapter."""

    INTEGER = "INTEGER"
    REAL = "REAL"
    STRING = "STRING"
    DATE = "DATE"


class GeometryType(enum.StrEnum):
    POINT = "POINT"


@dataclasses.dataclass(frozen=True)
class FieldSpec:
    """Declaration of one attribute field of a feature class.

    Attributes:
        name: Column name in the store.
        alias: Human-readable name.
        type: Field type.
        default: Engine-evaluated default, e.g. "CURRENT_TIMESTAMP".
    """

    name: str
    alias: str
    type: FieldType
    default: str | None = None


@dataclasses.dataclass
class Feature:
    """A feature entity created by a feature class but not yet inserted.

    Fields are addressed by index in the order the feature class declared
    them. Unset fields are left to the engine default on insertion.
    """

    field_count: int
    geometry: Point | None = None
    values: dict[int, FieldValue] = dataclasses.field(default_factory=dict)

    def set_geometry(self, point: Point) -> None:
        self.geometry = point

    def set_field(self, index: int, value: FieldValue) -> None:
        """Set an attribute by its declared field index.

        Raises:
            IndexError: if the index is outside the declared field layout.
        """
        if not 0 <= index < self.field_count:
            raise IndexError(f"Field index {index} out of range")
        self.values[index] = value


@dataclasses.dataclass(frozen=True)
class PersistedFeature:
    """A feature owned by the store; the id is assigned on insertion."""

    id: int
    geometry: Point
    fields: dict[str, FieldValue]


@dataclasses.dataclass(frozen=True)
class TileSource:
    """A raster tile provider in a fixed XYZ tiling scheme.

    Both extents are usually the same SpatialExtent instance: the full
    extent describes tile coverage, the limit extent the allowed area.
    """

    name: str
    url_template: str
    srid: int
    min_zoom: int
    max_zoom: int
    full_extent: Any
    limit_extent: Any
    cache_expires: int


@dataclasses.dataclass
class LayerRef:
    """One composed layer of a map document.

    Attributes:
        name: Layer name ("OSM", "Points").
        data_source: Opaque handle: a feature class or a TileSource.
        style_name: Name of the style preset applied to the layer.
        style: Style payload; not interpreted by the session core.
    """

    name: str
    data_source: Any
    style_name: str | None = None
    style: dict[str, Any] = dataclasses.field(default_factory=dict)
