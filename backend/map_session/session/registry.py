"""Registry of live sessions keyed by map identifier.

At most one MapSession per map identifier is live in a process. Opening a
map either finds the live session or creates a new one, and the caller is
told which happened.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, NamedTuple

from map_session.core import errors
from map_session.session import map_session

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)


class LookupOutcome(enum.Enum):
    FOUND = "found"
    CREATED = "created"


class SessionLookup(NamedTuple):
    outcome: LookupOutcome
    session: map_session.MapSession


class SessionRegistry:
    """In-process map of map identifier to live MapSession."""

    def __init__(self) -> None:
        self._sessions: dict[str, map_session.MapSession] = {}

    def __contains__(self, map_id: object) -> bool:
        return map_id in self._sessions

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._sessions))

    def open(
        self,
        map_id: str,
        factory: Callable[[str], map_session.MapSession],
    ) -> SessionLookup:
        """Return the live session for ``map_id``, creating it if needed.

        Args:
            map_id: Map identifier.
            factory: Builds a new, uninitialized session for ``map_id``.

        Returns:
            SessionLookup with outcome FOUND or CREATED.
        """
        session = self._sessions.get(map_id)
        if session is not None:
            return SessionLookup(LookupOutcome.FOUND, session)
        session = factory(map_id)
        self._sessions[map_id] = session
        logger.debug("Session for map %s created", map_id)
        return SessionLookup(LookupOutcome.CREATED, session)

    def get(self, map_id: str) -> map_session.MapSession | None:
        return self._sessions.get(map_id)

    def release(self, map_id: str) -> map_session.MapSession | None:
        """Forget the session for ``map_id`` without closing it."""
        return self._sessions.pop(map_id, None)

    def close_all(self) -> None:
        """Close and release every live session.

        Each session is closed even if closing another one fails; the
        first failure is re-raised afterwards.
        """
        first_error: errors.MapSessionError | None = None
        for map_id in tuple(self._sessions):
            session = self._sessions.pop(map_id)
            if session.state is map_session.SessionState.UNINITIALIZED:
                continue
            try:
                session.close()
            except errors.MapSessionError as exc:
                logger.exception("Closing map %s failed", map_id)
                first_error = first_error or exc
        if first_error is not None:
            raise first_error
