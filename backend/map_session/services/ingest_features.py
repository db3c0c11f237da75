"""Point feature ingestion through a coordinate transform.

This module creates a feature class in a feature store and fills it with
point records projected from their source spatial reference (EPSG:4326)
to the target one (EPSG:3857). Records are processed strictly in input
order so that store-assigned ids follow the order they were supplied.

A failure to create or insert any single feature aborts the whole batch
with IngestionFailure. There is no partial or best-effort mode: the
caller does not mark bootstrap complete, and the next session start
recreates the feature class and ingests again.

Ingestion is not idempotent. Calling it twice on a non-empty map would
duplicate the records, so callers gate it on an empty layer list.

Example:
    Ingest the four capital cities:
        >>> from map_session.geo.projector import CoordinateProjector
        >>> from map_session.services import ingest_features
        >>> result = ingest_features.ingest(
        ...     store,
        ...     ingest_features.POINTS_FEATURE_CLASS,
        ...     ingest_features.CITY_RECORDS,
        ...     CoordinateProjector(4326, 3857),
        ... )
        >>> result.count
        4
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, NamedTuple

from map_session.core import errors
from map_session.engine import models

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from map_session.engine import protocols
    from map_session.geo import projector as geo_projector

logger = logging.getLogger(__name__)

LONG_FIELD = 0
LAT_FIELD = 1
DATETIME_FIELD = 2
NAME_FIELD = 3


@dataclasses.dataclass(frozen=True)
class FeatureRecord:
    """Raw point record in the source spatial reference."""

    name: str
    x: float
    y: float


@dataclasses.dataclass(frozen=True)
class FeatureClassSpec:
    """Field layout and creation options of a feature class."""

    name: str
    geometry_type: models.GeometryType
    fields: tuple[models.FieldSpec, ...]
    options: Mapping[str, str]


class IngestResult(NamedTuple):
    feature_class: protocols.FeatureClassProtocol
    count: int


POINTS_FEATURE_CLASS = FeatureClassSpec(
    name="points",
    geometry_type=models.GeometryType.POINT,
    fields=(
        models.FieldSpec("long", "long", models.FieldType.REAL),
        models.FieldSpec("lat", "lat", models.FieldType.REAL),
        models.FieldSpec(
            "datetime", "datetime", models.FieldType.DATE, "CURRENT_TIMESTAMP"
        ),
        models.FieldSpec("name", "name", models.FieldType.STRING),
    ),
    options={
        "CREATE_OVERVIEWS": "ON",
        "ZOOM_LEVELS": ",".join(str(level) for level in range(2, 15)),
    },
)

# Coordinates from https://en.wikipedia.org
CITY_RECORDS: tuple[FeatureRecord, ...] = (
    FeatureRecord("Moscow", 37.616667, 55.75),
    FeatureRecord("London", -0.1275, 51.507222),
    FeatureRecord("Washington", -77.016389, 38.904722),
    FeatureRecord("Beijing", 116.383333, 39.916667),
)


def _create_feature_class(
    store: protocols.FeatureStoreProtocol,
    spec: FeatureClassSpec,
) -> protocols.FeatureClassProtocol:
    try:
        return store.create_feature_class(
            spec.name, spec.geometry_type, spec.fields, spec.options
        )
    except errors.EngineError as exc:
        raise errors.IngestionFailure(
            f"Cannot create feature class {spec.name}: {exc}"
        ) from exc


def ingest(
    store: protocols.FeatureStoreProtocol,
    spec: FeatureClassSpec,
    records: Sequence[FeatureRecord],
    projector: geo_projector.CoordinateProjector,
) -> IngestResult:
    """Create ``spec`` in ``store`` and insert one point per record.

    Args:
        store: Feature store receiving the feature class.
        spec: Field layout and creation options.
        records: Points in the projector's source spatial reference.
        projector: Transform reused for the whole batch.

    Returns:
        The created feature class and the number of inserted features.

    Raises:
        IngestionFailure: if the class or any feature cannot be created or
            inserted. Nothing after the failing record is attempted.
    """
    feature_class = _create_feature_class(store, spec)
    count = 0
    for position, record in enumerate(records):
        target = projector.transform(models.Point(record.x, record.y))
        try:
            feature = feature_class.create_feature()
            feature.set_geometry(target)
            feature.set_field(LONG_FIELD, record.x)
            feature.set_field(LAT_FIELD, record.y)
            feature.set_field(NAME_FIELD, record.name)
            feature_class.insert_feature(feature)
        except (errors.EngineError, IndexError) as exc:
            logger.error(
                "Ingestion of %s aborted at record %d (%s)",
                spec.name,
                position,
                record.name,
            )
            raise errors.IngestionFailure(
                f"Record {position} ({record.name}) failed: {exc}"
            ) from exc
        count += 1
    logger.info("Ingested %d features into %s", count, spec.name)
    return IngestResult(feature_class, count)
