"""Map session: lifetime, configuration and one-time bootstrap of a map.

A MapSession walks a map document through

    UNINITIALIZED -> CONFIGURED -> BOOTSTRAPPED | LOADED -> ACTIVE -> CLOSED

Configuration applies the memory profile and the extent limits. A map
with no layers is bootstrapped: the points feature class is ingested, the
tile-backed base layer is built from the same extent instance used for
the pan limits, the layers are attached and the document is saved. A map
that already has layers is loaded as is, so ingestion never runs twice.

All data sources are built before any layer is attached. If bootstrap
fails, layers already attached are removed again, the session stays
CONFIGURED and will not save on close; a retry, or the next start, sees
an empty map and bootstraps again.

Example:
    Drive a session by hand:
        >>> from map_session.engine.memory import InMemoryEngine
        >>> from map_session.session.map_session import MapSession
        >>> from map_session.session.view import MapView
        >>> session = MapSession("main", InMemoryEngine(data_dir), settings)
        >>> session.configure(2048)
        >>> session.bootstrap_or_load()
        <SessionState.BOOTSTRAPPED: 'bootstrapped'>
        >>> session.activate(MapView())
        >>> session.close()
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from map_session.core import errors
from map_session.engine import protocols
from map_session.geo import extent as geo_extent
from map_session.geo import projector as geo_projector
from map_session.services import ingest_features
from map_session.session import memory_profile
from map_session.session import view_state as session_view_state

if TYPE_CHECKING:
    from collections.abc import Sequence

    from map_session.core import config
    from map_session.engine import models

logger = logging.getLogger(__name__)

SOURCE_SRID = 4326
TARGET_SRID = geo_extent.WEB_MERCATOR_SRID
POINTS_LAYER = "Points"
BASE_LAYER = "OSM"
POINTS_STYLE_NAME = "pointsLayer"
STAR_SYMBOL = 6
POINTS_STYLE = {"color": "#00be78", "size": 8.0, "type": STAR_SYMBOL}


class SessionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    BOOTSTRAPPED = "bootstrapped"
    LOADED = "loaded"
    ACTIVE = "active"
    CLOSED = "closed"


_BINDABLE = frozenset(
    {SessionState.BOOTSTRAPPED, SessionState.LOADED, SessionState.ACTIVE}
)


class MapSession:
    """Aggregate root owning a map document, its profile and its layers.

    Args:
        map_id: Identifier of the map document.
        engine: Engine adapter providing documents, stores and tiles.
        settings: Application settings (store name, tile source, memory
            thresholds).
        extent: Extent shared by the pan limits and the base tile source.
    """

    def __init__(
        self,
        map_id: str,
        engine: protocols.EngineProtocol,
        settings: config.Settings,
        extent: geo_extent.SpatialExtent = geo_extent.WEB_MERCATOR_EXTENT,
    ) -> None:
        self.map_id = map_id
        self.extent = extent
        self.state = SessionState.UNINITIALIZED
        self.document: protocols.MapDocumentProtocol | None = None
        self.profile: memory_profile.MemoryProfile | None = None
        self._engine = engine
        self._settings = settings
        self._view: protocols.MapViewProtocol | None = None
        self._bootstrap_failed = False

    def __repr__(self) -> str:
        return f"MapSession(map_id={self.map_id!r}, state={self.state.name})"

    @property
    def layers(self) -> Sequence[models.LayerRef]:
        if self.document is None:
            return ()
        return self.document.layers

    @property
    def view(self) -> protocols.MapViewProtocol:
        """The bound view.

        Raises:
            ViewNotBound: if no view is bound.
        """
        if self._view is None:
            raise errors.ViewNotBound(f"No view bound to map {self.map_id}")
        return self._view

    def _require_document(self) -> protocols.MapDocumentProtocol:
        if self.document is None:
            raise errors.SessionNotConfigured(f"Map {self.map_id} is not configured")
        return self.document

    def configure(self, memory_mb: int | None = None) -> memory_profile.MemoryProfile:
        """Open the document and apply memory options and extent limits.

        Args:
            memory_mb: Total device memory, None if the host cannot tell.

        Returns:
            The memory profile applied to the document.

        Raises:
            SessionNotConfigured: if the session was already configured.
            ConfigurationError: if the engine rejects options or limits.
        """
        if self.state is not SessionState.UNINITIALIZED:
            raise errors.SessionNotConfigured(
                f"Map {self.map_id} cannot be configured from {self.state.value}"
            )
        profile = memory_profile.compute(
            memory_mb,
            fallback_mb=self._settings.fallback_memory_mb,
            low_memory_threshold_mb=self._settings.low_memory_threshold_mb,
        )
        document: protocols.MapDocumentProtocol | None = None
        try:
            document = self._engine.get_map(self.map_id)
            document.set_options(profile.to_options())
            document.set_extent_limits(*self.extent.as_limits())
        except errors.EngineError as exc:
            logger.error("Configuration of map %s failed: %s", self.map_id, exc)
            if document is not None:
                document.close()
            raise errors.ConfigurationError(
                f"Cannot configure map {self.map_id}: {exc}"
            ) from exc
        self.document = document
        self.profile = profile
        self.state = SessionState.CONFIGURED
        logger.info(
            "Map %s configured (memory=%sMB, reduce_factor=%s)",
            self.map_id,
            profile.total_device_memory_mb,
            profile.reduce_factor,
        )
        return profile

    def bootstrap_or_load(
        self,
        records: Sequence[ingest_features.FeatureRecord] = ingest_features.CITY_RECORDS,
    ) -> SessionState:
        """Bootstrap an empty map, or load one that already has layers.

        Raises:
            SessionNotConfigured: if called outside the CONFIGURED state.
            UnsupportedSpatialReference: if the projector cannot be built.
            IngestionFailure: if the points batch fails.
            ConfigurationError: if the base layer or save fails.
        """
        if self.state is not SessionState.CONFIGURED:
            raise errors.SessionNotConfigured(
                f"Map {self.map_id} cannot bootstrap from {self.state.value}"
            )
        document = self._require_document()
        if document.layer_count > 0:
            self.state = SessionState.LOADED
            logger.info(
                "Map %s loaded with %d layers", self.map_id, document.layer_count
            )
            return self.state
        try:
            self._bootstrap(document, records)
        except errors.MapSessionError:
            self._bootstrap_failed = True
            logger.exception("Bootstrap of map %s failed", self.map_id)
            raise
        self._bootstrap_failed = False
        self.state = SessionState.BOOTSTRAPPED
        logger.info("Map %s bootstrapped", self.map_id)
        return self.state

    def _bootstrap(
        self,
        document: protocols.MapDocumentProtocol,
        records: Sequence[ingest_features.FeatureRecord],
    ) -> None:
        settings = self._settings
        try:
            store = self._engine.get_store(settings.store_name)
        except errors.EngineError as exc:
            raise errors.IngestionFailure(
                f"Cannot open feature store {settings.store_name}: {exc}"
            ) from exc
        projector = geo_projector.CoordinateProjector(SOURCE_SRID, TARGET_SRID)
        result = ingest_features.ingest(
            store, ingest_features.POINTS_FEATURE_CLASS, records, projector
        )
        try:
            base_source = self._engine.tile_factory.create_tms(
                settings.tile_connection_name,
                settings.tile_url_template,
                self.extent.srid,
                settings.tile_min_zoom,
                settings.tile_max_zoom,
                self.extent,
                self.extent,
                settings.tile_cache_expires,
            )
        except errors.EngineError as exc:
            raise errors.ConfigurationError(
                f"Cannot build base layer source for map {self.map_id}: {exc}"
            ) from exc
        attached: list[models.LayerRef] = []
        try:
            points_layer = document.add_layer(POINTS_LAYER, result.feature_class)
            attached.append(points_layer)
            points_layer.style_name = POINTS_STYLE_NAME
            points_layer.style = dict(POINTS_STYLE)
            attached.append(document.add_layer(BASE_LAYER, base_source))
            document.save()
        except errors.EngineError as exc:
            for layer in reversed(attached):
                document.remove_layer(layer)
            raise errors.ConfigurationError(
                f"Cannot attach layers to map {self.map_id}: {exc}"
            ) from exc

    def activate(
        self,
        view: protocols.MapViewProtocol,
        view_state: session_view_state.ViewState | None = None,
    ) -> None:
        """Bind ``view`` and un-freeze it once the map is ready.

        The view stays frozen while it is bound and the optional view
        state is applied. A previously bound view is frozen and detached.

        Raises:
            SessionNotConfigured: if the map is not bootstrapped or loaded.
        """
        if self.state not in _BINDABLE:
            raise errors.SessionNotConfigured(
                f"Map {self.map_id} cannot bind a view from {self.state.value}"
            )
        if self._view is not None and self._view is not view:
            self._detach_view()
        view.frozen = True
        view.set_map(self.document)
        self._view = view
        if view_state is not None:
            session_view_state.apply(self, view_state)
        view.frozen = False
        self.state = SessionState.ACTIVE
        logger.info("Map %s active", self.map_id)

    def _detach_view(self) -> None:
        if self._view is None:
            return
        self._view.frozen = True
        self._view.set_map(None)
        self._view = None

    def points_feature_class(self) -> protocols.FeatureClassProtocol | None:
        """Look up the feature class behind the points layer.

        Returns:
            The feature class, or None if there is no document, no points
            layer, or the layer is not backed by a feature class.
        """
        if self.document is None:
            return None
        layer = next(
            (layer for layer in self.document.layers if layer.name == POINTS_LAYER),
            None,
        )
        if layer is None:
            return None
        source = layer.data_source
        if not isinstance(source, protocols.FeatureClassProtocol):
            return None
        return source

    def close(self) -> None:
        """Save and close the document; closing twice is a no-op.

        The save is skipped after a failed bootstrap so that a partially
        built layer list is never persisted.

        Raises:
            SessionNotConfigured: if the session was never configured.
        """
        if self.state is SessionState.CLOSED:
            return
        if self.state is SessionState.UNINITIALIZED:
            raise errors.SessionNotConfigured(
                f"Map {self.map_id} closed before it was configured"
            )
        document = self._require_document()
        self._detach_view()
        try:
            if self._bootstrap_failed:
                logger.warning(
                    "Map %s closed without saving after failed bootstrap",
                    self.map_id,
                )
            else:
                document.save()
        finally:
            document.close()
            self.state = SessionState.CLOSED
        logger.info("Map %s closed", self.map_id)
