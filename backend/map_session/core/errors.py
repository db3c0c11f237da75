"""Exception taxonomy for the map session core.

Every failure raised by the session, its collaborators and the engine
adapters derives from MapSessionError, so the HTTP host can translate the
whole family in one place. Engine adapters raise EngineError and the
session translates it into the failure of the step that was running
(configuration or ingestion) with ``raise ... from exc``.

Example:
    Surface a bootstrap failure to the host:
        >>> from map_session.core import errors
        >>> try:
        ...     session.bootstrap_or_load()
        ... except errors.IngestionFailure as e:
        ...     print(f"Points layer missing: {e}")
"""


class MapSessionError(RuntimeError):
    """Base class for every error raised by the map session core."""


class EngineError(MapSessionError):
    """Raised by engine adapters when the underlying engine call fails.

    Wraps driver-level exceptions (psycopg2 errors, closed handles) so that
    the session never has to know which backend is in use.
    """


class ConfigurationError(MapSessionError):
    """Applying memory options or extent limits failed.

    Fatal: the session start is aborted and the map is not displayed.
    """


class UnsupportedSpatialReference(MapSessionError):
    """A spatial reference code is not recognized by the projection library.

    Raised while constructing a CoordinateProjector; fatal to bootstrap.
    """


class IngestionFailure(MapSessionError):
    """Creating or inserting a feature failed during an ingestion batch.

    The whole batch is abandoned. Bootstrap is not marked complete, so the
    next session start retries ingestion from scratch.
    """


class SessionNotConfigured(MapSessionError):
    """A session operation was called out of order.

    This is a programming error (for example closing a session that was
    never configured), not a runtime condition to recover from.
    """


class ViewNotBound(MapSessionError):
    """A view operation was attempted before any view was bound.

    ViewState capture and apply treat this as a silent skip.
    """
