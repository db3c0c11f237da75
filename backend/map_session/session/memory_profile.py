"""Memory-aware tiling and viewport configuration.

Low-memory devices render with a reduced viewport: tiles are requested
bigger, so fewer of them are held in memory at once. The profile is
computed once per session start and applied to the map document as an
options mapping with string values.
"""

from __future__ import annotations

import dataclasses
import logging

import psutil

logger = logging.getLogger(__name__)

FALLBACK_MEMORY_MB = 512
LOW_MEMORY_THRESHOLD_MB = 1024
ZOOM_INCREMENT = -1
LOW_MEMORY_REDUCE_FACTOR = 2.0
DEFAULT_REDUCE_FACTOR = 1.0

ZOOM_INCREMENT_KEY = "ZOOM_INCREMENT"
VIEWPORT_REDUCE_FACTOR_KEY = "VIEWPORT_REDUCE_FACTOR"


@dataclasses.dataclass(frozen=True)
class MemoryProfile:
    """Adaptive configuration derived from total device memory.

    Attributes:
        total_device_memory_mb: Memory the profile was computed for.
        reduce_factor: Viewport reduction, 2.0 on low-memory devices.
        zoom_increment: Offset added to the scale-to-zoom-level mapping.
    """

    total_device_memory_mb: int
    reduce_factor: float
    zoom_increment: int = ZOOM_INCREMENT

    def to_options(self) -> dict[str, str]:
        """Encode the profile as engine option strings."""
        return {
            ZOOM_INCREMENT_KEY: str(self.zoom_increment),
            VIEWPORT_REDUCE_FACTOR_KEY: str(self.reduce_factor),
        }


def compute(
    total_device_memory_mb: int | None,
    *,
    fallback_mb: int = FALLBACK_MEMORY_MB,
    low_memory_threshold_mb: int = LOW_MEMORY_THRESHOLD_MB,
) -> MemoryProfile:
    """Derive a MemoryProfile from the reported device memory.

    Args:
        total_device_memory_mb: Total memory in MB, or None when the host
            cannot report it.
        fallback_mb: Memory assumed when nothing is reported.
        low_memory_threshold_mb: Devices strictly below this value get a
            reduce factor of 2.0.

    Returns:
        The immutable profile. Same input always yields an equal profile.
    """
    total = fallback_mb if total_device_memory_mb is None else total_device_memory_mb
    if total < low_memory_threshold_mb:
        reduce_factor = LOW_MEMORY_REDUCE_FACTOR
    else:
        reduce_factor = DEFAULT_REDUCE_FACTOR
    return MemoryProfile(total_device_memory_mb=total, reduce_factor=reduce_factor)


def detect_total_memory_mb() -> int | None:
    """Report total physical memory of this host in MB.

    Returns:
        Memory in MB, or None if the platform cannot report it.
    """
    try:
        total_bytes = psutil.virtual_memory().total
    except (OSError, RuntimeError, NotImplementedError) as exc:
        logger.warning("Cannot read total memory: %s", exc)
        return None
    return int(total_bytes // (1024 * 1024))
