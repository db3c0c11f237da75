"""Map session lifecycle API endpoints.

This module exposes the host lifecycle of a map session over HTTP: start
(configure, bootstrap-or-load and bind a server-side view), save and
restore the view state, zoom, list the ingested points and teardown.
Sessions live in a process-wide registry keyed by map identifier.

Example:
    Start the main map on a low-memory device and restore its view:
        >>> response = client.post(
        ...     "/api/sessions/main/start",
        ...     json={"memory_mb": 768,
        ...           "view_state": {"scale": 3e-6, "center_x": 0.0,
        ...                          "center_y": 0.0}},
        ... )
        >>> response.json()["state"]
        'active'

    Save the view state before the process goes away:
        >>> client.get("/api/sessions/main/view-state").json()
        {'scale': 3e-06, 'center_x': 0.0, 'center_y': 0.0}
"""

from __future__ import annotations

import functools
import logging
from typing import Any

from typing_extensions import TypedDict

import fastapi
import pydantic

from map_session import engine as engine_factory
from map_session.core import config, errors
from map_session.engine import protocols
from map_session.session import host as session_host
from map_session.session import map_session, registry, view, view_state

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/sessions", tags=["sessions"])


class ViewStateModel(pydantic.BaseModel):
    scale: float = view.DEFAULT_SCALE
    center_x: float = 0.0
    center_y: float = 0.0


class StartRequest(pydantic.BaseModel):
    memory_mb: int | None = pydantic.Field(default=None, ge=0)
    view_state: ViewStateModel | None = None


class LayerSummary(TypedDict):
    name: str
    style_name: str | None
    style: dict[str, Any]


class SessionSummary(TypedDict):
    map_id: str
    state: str
    outcome: str | None
    profile: dict[str, Any] | None
    layers: list[LayerSummary]


@functools.lru_cache
def get_engine() -> protocols.EngineProtocol:
    """Process-wide engine adapter built from the cached settings."""
    return engine_factory.get_engine(config.get_settings())


@functools.lru_cache
def get_registry() -> registry.SessionRegistry:
    """Process-wide session registry."""
    return registry.SessionRegistry()


def _validate_map_id(map_id: str) -> str:
    """Validate a map identifier.

    Only allows alphanumeric characters and underscores.

    Raises:
        HTTPException: If the identifier contains invalid characters.
    """
    if not map_id.replace("_", "").isalnum():
        raise fastapi.HTTPException(status_code=400, detail="Invalid map id")
    return map_id


def _get_host(
    map_id: str,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    engine: protocols.EngineProtocol = fastapi.Depends(get_engine),  # noqa: B008
    sessions: registry.SessionRegistry = fastapi.Depends(get_registry),  # noqa: B008
) -> session_host.SessionHost:
    """Resolve the lifecycle host of the requested map."""
    return session_host.SessionHost(
        _validate_map_id(map_id), sessions, engine, settings
    )


def _require_session(host: session_host.SessionHost) -> map_session.MapSession:
    session = host.registry.get(host.map_id)
    if session is None:
        raise fastapi.HTTPException(status_code=404, detail="Session not found")
    return session


def _to_http_error(exc: errors.MapSessionError) -> fastapi.HTTPException:
    """Map a session error to the HTTP status surfaced to the client."""
    if isinstance(exc, errors.SessionNotConfigured | errors.ViewNotBound):
        return fastapi.HTTPException(status_code=409, detail=str(exc))
    return fastapi.HTTPException(status_code=500, detail=str(exc))


def _summary(
    session: map_session.MapSession,
    outcome: registry.LookupOutcome | None = None,
) -> SessionSummary:
    profile = session.profile
    return SessionSummary(
        map_id=session.map_id,
        state=session.state.value,
        outcome=outcome.value if outcome is not None else None,
        profile=(
            {
                "total_device_memory_mb": profile.total_device_memory_mb,
                "reduce_factor": profile.reduce_factor,
                "zoom_increment": profile.zoom_increment,
            }
            if profile is not None
            else None
        ),
        layers=[
            LayerSummary(
                name=layer.name, style_name=layer.style_name, style=layer.style
            )
            for layer in session.layers
        ],
    )


def _to_view_state(model: ViewStateModel) -> view_state.ViewState:
    return view_state.ViewState(
        scale=model.scale, center_x=model.center_x, center_y=model.center_y
    )


@router.post("/{map_id}/start")
async def start_session(
    request: StartRequest | None = None,
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> SessionSummary:
    """Start the session of a map and bind a server-side view.

    A map with no layers is bootstrapped; a map with layers is loaded.
    Starting a live session returns it with outcome "found"; a provided
    view state is then restored onto its view.

    Raises:
        HTTPException: 500 with the failure message if configuration or
            bootstrap fails.
    """
    request = request or StartRequest()
    restored = (
        _to_view_state(request.view_state) if request.view_state is not None else None
    )
    try:
        lookup = host.on_start(request.memory_mb)
        session = lookup.session
        if session.state is not map_session.SessionState.ACTIVE:
            host.on_bind(view.MapView(), restored)
        elif restored is not None:
            host.on_restore_state(restored)
    except errors.MapSessionError as exc:
        raise _to_http_error(exc) from exc
    return _summary(session, lookup.outcome)


@router.get("/{map_id}")
async def get_session(
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> SessionSummary:
    return _summary(_require_session(host))


@router.get("/{map_id}/view-state")
async def save_view_state(
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> ViewStateModel:
    """Capture scale and center of the session's view.

    Raises:
        HTTPException: 404 if the session is not live, 409 if no view is
            bound.
    """
    _require_session(host)
    state = host.on_save_state()
    if state is None:
        raise fastapi.HTTPException(status_code=409, detail="No view bound")
    return ViewStateModel(
        scale=state.scale, center_x=state.center_x, center_y=state.center_y
    )


@router.put("/{map_id}/view-state")
async def restore_view_state(
    state: ViewStateModel,
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> dict[str, bool]:
    _require_session(host)
    return {"applied": host.on_restore_state(_to_view_state(state))}


@router.post("/{map_id}/zoom-in")
async def zoom_in(
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> ViewStateModel:
    return _zoom(host, zoom_in=True)


@router.post("/{map_id}/zoom-out")
async def zoom_out(
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> ViewStateModel:
    return _zoom(host, zoom_in=False)


def _zoom(host: session_host.SessionHost, *, zoom_in: bool) -> ViewStateModel:
    session = _require_session(host)
    try:
        bound = session.view
    except errors.ViewNotBound as exc:
        raise _to_http_error(exc) from exc
    if not isinstance(bound, view.MapView):
        raise fastapi.HTTPException(status_code=409, detail="View cannot zoom")
    if zoom_in:
        bound.zoom_in()
    else:
        bound.zoom_out()
    return ViewStateModel(
        scale=bound.scale, center_x=bound.center.x, center_y=bound.center.y
    )


@router.get("/{map_id}/features")
async def list_features(
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> list[dict[str, Any]]:
    """List the features of the points layer in insertion order.

    Returns an empty list when the map has no points layer backed by a
    feature class.
    """
    session = _require_session(host)
    feature_class = session.points_feature_class()
    if feature_class is None:
        return []
    try:
        features = list(feature_class.features())
    except errors.EngineError as exc:
        raise _to_http_error(exc) from exc
    return [
        {
            "id": feature.id,
            "x": feature.geometry.x,
            "y": feature.geometry.y,
            "fields": feature.fields,
        }
        for feature in features
    ]


@router.delete("/{map_id}")
async def teardown_session(
    host: session_host.SessionHost = fastapi.Depends(_get_host),  # noqa: B008
) -> dict[str, str]:
    """Save and close the session; tearing down twice is harmless."""
    try:
        host.on_teardown()
    except errors.MapSessionError as exc:
        raise _to_http_error(exc) from exc
    return {"status": "closed"}
