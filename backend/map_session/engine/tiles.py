"""Tile source factory for TMS/XYZ base layers.

A tile source is described by a small JSON connection file written to the
data directory (for example ``osm.wconn``). Tile fetching and rendering
happen in the engine; this factory only records where tiles come from and
which extent they cover.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from map_session.core import errors
from map_session.engine import models

if TYPE_CHECKING:
    import pathlib

    from map_session.geo import extent as geo_extent

logger = logging.getLogger(__name__)


class TileSourceFactory:
    """Create tile sources whose connection files live in ``data_dir``."""

    def __init__(self, data_dir: pathlib.Path) -> None:
        self.data_dir = data_dir

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
    ) -> models.TileSource:
        """Write the connection file and return the tile source.

        Raises:
            EngineError: if the connection file cannot be written.
        """
        source = models.TileSource(
            name=name,
            url_template=url_template,
            srid=srid,
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            full_extent=full_extent,
            limit_extent=limit_extent,
            cache_expires=cache_expires,
        )
        payload = {
            "type": "TMS",
            "url": url_template,
            "epsg": srid,
            "z_min": min_zoom,
            "z_max": max_zoom,
            "extent": list(full_extent.as_limits()),
            "limit_extent": list(limit_extent.as_limits()),
            "cache_expires": cache_expires,
        }
        path = self.data_dir / name
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise errors.EngineError(
                f"Cannot write tile connection {path}: {exc}"
            ) from exc
        logger.info("Tile source %s written to %s", name, path)
        return source
