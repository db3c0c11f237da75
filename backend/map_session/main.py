"""FastAPI application entrypoint and configuration.

This module provides the application factory that configures logging,
sets up CORS middleware, includes the session and info routers and
exposes a health check endpoint. On shutdown every live map session is
saved and closed.

Example:
    The application can be run with uvicorn:
        $ uvicorn map_session.main:app --reload
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import fastapi
from fastapi.middleware import cors

from map_session.api import info, sessions
from map_session.core import config, logging_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """Close every live session when the application shuts down."""
    yield
    logger.info("Shutting down, closing live map sessions")
    sessions.get_registry().close_all()


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logging_config.setup_logging(settings)
    app = fastapi.FastAPI(
        title=info.APP_NAME, version=info.APP_VERSION, lifespan=lifespan
    )

    app.include_router(sessions.router)
    app.include_router(info.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers."""
        return {"status": "ok"}

    return app


app = create_app()
