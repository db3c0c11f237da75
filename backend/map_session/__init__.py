"""Adaptive map session service.

This package orchestrates the lifetime of a map document backed by a
geospatial engine: a memory-aware configuration is derived from the
device, the map's layers and point features are created exactly once,
and the view state (scale and center) survives process restarts.

- Computes tiling/viewport options from available memory
- Bootstraps an empty map idempotently (points layer + tile base layer)
- Projects point records from EPSG:4326 to EPSG:3857 with pyproj
- Persists documents and features through an in-memory or PostGIS engine
- Exposes the host lifecycle (start, save/restore state, teardown) over
  FastAPI

See module sub-docstrings for details on architecture and usage.
"""
