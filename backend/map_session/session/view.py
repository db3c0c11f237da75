"""In-process map view bound to a session's map document.

The view only borrows the document: it keeps a weak reference, so the
document's lifetime stays under the control of the session and the host
lifecycle. A new view starts frozen; the session un-freezes it once the
map is fully configured and its layers are attached.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING

from map_session.engine import models

if TYPE_CHECKING:
    from map_session.engine import protocols

DEFAULT_SCALE = 0.0000015
ZOOM_STEP = 2.0


class MapView:
    """Viewport state (scale and center) plus the freeze flag."""

    def __init__(
        self,
        scale: float = DEFAULT_SCALE,
        center: models.Point | None = None,
    ) -> None:
        self.frozen = True
        self.scale = scale
        self.center = center or models.Point(0.0, 0.0)
        self._document: weakref.ref[protocols.MapDocumentProtocol] | None = None

    @property
    def document(self) -> protocols.MapDocumentProtocol | None:
        """The bound document, or None if unbound or already released."""
        if self._document is None:
            return None
        return self._document()

    def set_map(self, document: protocols.MapDocumentProtocol | None) -> None:
        self._document = weakref.ref(document) if document is not None else None

    def zoom_in(self) -> None:
        self.scale *= ZOOM_STEP

    def zoom_out(self) -> None:
        self.scale /= ZOOM_STEP
