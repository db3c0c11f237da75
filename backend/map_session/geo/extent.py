"""Fixed bounding geometry used for pan limits and tile coverage.

The Web-Mercator world extent is shared by reference: the session hands
the same instance to the map document's extent limiter and to the base
tile source, so the allowed pan range and the tile coverage never drift
apart. Clamping itself is done by the engine.
"""

from __future__ import annotations

import dataclasses

from map_session.core import errors

WEB_MERCATOR_BOUND = 20037508.34
WEB_MERCATOR_SRID = 3857


@dataclasses.dataclass(frozen=True)
class SpatialExtent:
    """Axis-aligned bounds in a single projected spatial reference.

    Raises:
        ConfigurationError: if min_x >= max_x or min_y >= max_y.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    srid: int = WEB_MERCATOR_SRID

    def __post_init__(self) -> None:
        if not (self.min_x < self.max_x and self.min_y < self.max_y):
            raise errors.ConfigurationError(
                f"Degenerate extent ({self.min_x}, {self.min_y}, "
                f"{self.max_x}, {self.max_y})"
            )

    def as_limits(self) -> tuple[float, float, float, float]:
        """Return bounds in set_extent_limits argument order."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)


WEB_MERCATOR_EXTENT = SpatialExtent(
    -WEB_MERCATOR_BOUND,
    -WEB_MERCATOR_BOUND,
    WEB_MERCATOR_BOUND,
    WEB_MERCATOR_BOUND,
)
