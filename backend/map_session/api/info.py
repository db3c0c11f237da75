"""Service information endpoint.

Reports the versions of the service and of the geospatial libraries it
runs on, so a client can show them in an "about" dialog.
"""

import importlib.metadata

import fastapi
import psutil
import psycopg2
import pydantic
import pyproj

router = fastapi.APIRouter(prefix="/api", tags=["info"])

APP_NAME = "Map Session"
APP_VERSION = "0.1.0"


def library_versions() -> dict[str, str]:
    """Collect version strings of the libraries the engine relies on."""
    return {
        "pyproj": pyproj.__version__,
        "proj": pyproj.proj_version_str,
        "psycopg2": psycopg2.__version__.split(" ")[0],
        "psutil": psutil.__version__,
        "fastapi": fastapi.__version__,
        "pydantic": pydantic.VERSION,
        "pydantic-settings": importlib.metadata.version("pydantic-settings"),
    }


@router.get("/info")
async def info() -> dict[str, object]:
    """Return the service name, its version and library versions."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "libraries": library_versions(),
    }
