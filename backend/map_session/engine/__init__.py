"""Geospatial engine contracts and adapters.

This package holds the protocols the session core consumes from the
engine, the value types exchanged with it, and two adapters: an
in-process engine for tests and local development and a PostGIS engine
for production. Use get_engine() to build the adapter selected by the
settings.

Example:
    >>> from map_session.engine import get_engine
    >>> engine = get_engine(settings)
    >>> document = engine.get_map(settings.map_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from map_session.engine import memory, postgis

if TYPE_CHECKING:
    from map_session.core import config
    from map_session.engine import protocols


def get_engine(settings: config.Settings) -> protocols.EngineProtocol:
    """Factory function to create the configured engine adapter.

    Args:
        settings: Application settings selecting the backend.

    Returns:
        InMemoryEngine for "memory", PostgisEngine for "postgis".
    """
    if settings.engine_backend == "postgis":
        return postgis.PostgisEngine(settings)
    return memory.InMemoryEngine(settings.data_dir)
