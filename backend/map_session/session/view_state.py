"""Scale and center snapshot carried across process restarts.

The host saves a ViewState when the process may be killed and applies it
back after restart. Both operations need a bound view; without one they
are skipped silently and leave any prior state alone.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from map_session.core import errors
from map_session.engine import models
from map_session.session import view as session_view

if TYPE_CHECKING:
    from collections.abc import Mapping

    from map_session.session import map_session

logger = logging.getLogger(__name__)

SCALE_KEY = "map_scale"
CENTER_X_KEY = "map_center_x"
CENTER_Y_KEY = "map_center_y"


@dataclasses.dataclass(frozen=True)
class ViewState:
    scale: float = session_view.DEFAULT_SCALE
    center_x: float = 0.0
    center_y: float = 0.0

    def to_bundle(self) -> dict[str, float]:
        """Encode as the host's saved-state bundle."""
        return {
            SCALE_KEY: self.scale,
            CENTER_X_KEY: self.center_x,
            CENTER_Y_KEY: self.center_y,
        }

    @classmethod
    def from_bundle(cls, bundle: Mapping[str, Any] | None) -> ViewState:
        """Decode a saved-state bundle; absent or None values take the defaults."""
        if not bundle:
            return cls()
        defaults = cls()
        return cls(
            scale=_bundle_value(bundle, SCALE_KEY, defaults.scale),
            center_x=_bundle_value(bundle, CENTER_X_KEY, defaults.center_x),
            center_y=_bundle_value(bundle, CENTER_Y_KEY, defaults.center_y),
        )


def _bundle_value(bundle: Mapping[str, Any], key: str, default: float) -> float:
    raw = bundle.get(key)
    return default if raw is None else float(raw)


def capture(session: map_session.MapSession) -> ViewState | None:
    """Snapshot scale and center of the session's bound view.

    Returns:
        The snapshot, or None when no view is bound.
    """
    try:
        view = session.view
    except errors.ViewNotBound:
        logger.debug("No view bound to %s, nothing captured", session.map_id)
        return None
    return ViewState(
        scale=view.scale, center_x=view.center.x, center_y=view.center.y
    )


def apply(session: map_session.MapSession, state: ViewState) -> bool:
    """Write scale, then center, to the session's bound view.

    Returns:
        True if applied, False when skipped because no view is bound.
    """
    try:
        view = session.view
    except errors.ViewNotBound:
        logger.debug("No view bound to %s, view state skipped", session.map_id)
        return False
    view.scale = state.scale
    view.center = models.Point(state.center_x, state.center_y)
    return True
