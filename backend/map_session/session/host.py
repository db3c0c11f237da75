"""Host lifecycle adapter around a MapSession.

The host (an application window, a web worker, a test) drives a session
through four callbacks: start, save state, restore state and teardown.
The component that calls on_start owns the session; views only borrow it.

Example:
    >>> host = SessionHost("main", registry, engine, settings)
    >>> lookup = host.on_start(memory_hint_mb=768)
    >>> host.on_bind(MapView(), ViewState.from_bundle(saved_bundle))
    >>> saved_bundle = host.on_save_state().to_bundle()
    >>> host.on_teardown()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from map_session.core import errors
from map_session.session import map_session, memory_profile
from map_session.session import registry as session_registry
from map_session.session import view_state as session_view_state

if TYPE_CHECKING:
    from map_session.core import config
    from map_session.engine import protocols

logger = logging.getLogger(__name__)


class SessionHost:
    """Lifecycle callbacks for the session of one map identifier."""

    def __init__(
        self,
        map_id: str,
        registry: session_registry.SessionRegistry,
        engine: protocols.EngineProtocol,
        settings: config.Settings,
    ) -> None:
        self.map_id = map_id
        self.registry = registry
        self.engine = engine
        self.settings = settings

    def _create(self, map_id: str) -> map_session.MapSession:
        return map_session.MapSession(map_id, self.engine, self.settings)

    def _require(self) -> map_session.MapSession:
        session = self.registry.get(self.map_id)
        if session is None:
            raise errors.SessionNotConfigured(f"Map {self.map_id} is not started")
        return session

    def on_start(
        self, memory_hint_mb: int | None = None
    ) -> session_registry.SessionLookup:
        """Open, configure and bootstrap-or-load the session.

        A session that is already live is returned untouched. When no
        memory hint is given, the host's physical memory is probed.

        Raises:
            ConfigurationError, UnsupportedSpatialReference,
            IngestionFailure: the start failed; the session is closed
                without saving and released, so the next start retries.
        """
        lookup = self.registry.open(self.map_id, self._create)
        if lookup.outcome is session_registry.LookupOutcome.FOUND:
            return lookup
        session = lookup.session
        memory_mb = (
            memory_hint_mb
            if memory_hint_mb is not None
            else memory_profile.detect_total_memory_mb()
        )
        try:
            session.configure(memory_mb)
            session.bootstrap_or_load()
        except errors.MapSessionError:
            self._discard(session)
            raise
        return lookup

    def _discard(self, session: map_session.MapSession) -> None:
        self.registry.release(self.map_id)
        if session.state is not map_session.SessionState.UNINITIALIZED:
            session.close()

    def on_bind(
        self,
        view: protocols.MapViewProtocol,
        view_state: session_view_state.ViewState | None = None,
    ) -> None:
        self._require().activate(view, view_state)

    def on_save_state(self) -> session_view_state.ViewState | None:
        session = self.registry.get(self.map_id)
        if session is None:
            return None
        return session_view_state.capture(session)

    def on_restore_state(self, state: session_view_state.ViewState) -> bool:
        session = self.registry.get(self.map_id)
        if session is None:
            return False
        return session_view_state.apply(session, state)

    def on_teardown(self) -> None:
        """Close and release the session; a no-op if none is live."""
        session = self.registry.release(self.map_id)
        if session is None:
            return
        if session.state is map_session.SessionState.UNINITIALIZED:
            return
        session.close()
