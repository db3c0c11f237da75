"""Logging configuration for the map session service.

Configures the standard library logging tree once per process through
``logging.config.dictConfig``. Modules log through
``logging.getLogger(__name__)`` and never configure handlers themselves.
"""

from __future__ import annotations

import logging.config
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from map_session.core import config

DETAILED_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s:%(lineno)d] %(message)s"


def build_logging_config(level: str) -> dict[str, Any]:
    """Build the dictConfig mapping for the given root level."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": DETAILED_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "detailed",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "map_session": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: config.Settings) -> None:
    """Apply the logging configuration using the settings' log level."""
    logging.config.dictConfig(build_logging_config(settings.log_level.upper()))
