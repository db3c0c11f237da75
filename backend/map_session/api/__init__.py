"""API router subpackage for the map session service.

Submodules:
    - sessions: Lifecycle endpoints (start, view state, zoom, features,
      teardown) of map sessions.
    - info: Service and library version information.
"""
