"""Source to target spatial reference transform built on pyproj.

A CoordinateProjector is constructed once per ingestion batch and reused
for every record; building the pyproj Transformer is the expensive part.
Axis order is always (x=longitude/easting, y=latitude/northing).

Example:
    Project Moscow to Web Mercator:
        >>> from map_session.engine.models import Point
        >>> from map_session.geo.projector import CoordinateProjector
        >>> projector = CoordinateProjector(4326, 3857)
        >>> projector.transform(Point(37.616667, 55.75))
        Point(x=4187468.7..., y=7508807.8...)
"""

from __future__ import annotations

import logging

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from map_session.core import errors
from map_session.engine import models

logger = logging.getLogger(__name__)


def _crs_from_code(srid: int) -> CRS:
    try:
        return CRS.from_epsg(srid)
    except CRSError as exc:
        raise errors.UnsupportedSpatialReference(
            f"Unsupported spatial reference EPSG:{srid}"
        ) from exc


class CoordinateProjector:
    """Stateless coordinate remap between two EPSG codes.

    Args:
        source_srid: EPSG code of input coordinates.
        target_srid: EPSG code of output coordinates.

    Raises:
        UnsupportedSpatialReference: if either code is unknown to PROJ.
    """

    def __init__(self, source_srid: int, target_srid: int) -> None:
        self.source_srid = source_srid
        self.target_srid = target_srid
        self._transformer = Transformer.from_crs(
            _crs_from_code(source_srid),
            _crs_from_code(target_srid),
            always_xy=True,
        )
        logger.debug(
            "Projector EPSG:%s -> EPSG:%s ready", source_srid, target_srid
        )

    def transform(self, point: models.Point) -> models.Point:
        """Return a new point in the target spatial reference.

        Invalid inputs (NaN, out of range) are passed to PROJ unchecked.
        """
        x, y = self._transformer.transform(point.x, point.y)
        return models.Point(float(x), float(y))
