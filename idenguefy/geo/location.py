"""Live user location providers."""
from __future__ import annotations

import logging
import threading
from typing import Protocol, Tuple

log = logging.getLogger(__name__)

# Used when no device fix is available (NTU, Singapore)
FALLBACK_COORDINATES: Tuple[float, float] = (103.6831, 1.3483)


class LocationProvider(Protocol):
    def is_ready(self) -> bool:
        ...

    def current_coordinates(self) -> Tuple[float, float]:
        """(lon, lat) of the user."""
        ...


class StaticLocation:
    """Location holder fed by whatever owns the device GPS.

    Thread-safe: the GPS side calls ``update()`` while the alert
    scheduler reads ``current_coordinates()``.
    """

    def __init__(
        self,
        lon: float = FALLBACK_COORDINATES[0],
        lat: float = FALLBACK_COORDINATES[1],
        ready: bool = True,
    ) -> None:
        self._lock = threading.Lock()
        self._coords = (lon, lat)
        self._ready = ready

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    def current_coordinates(self) -> Tuple[float, float]:
        with self._lock:
            return self._coords

    def update(self, lon: float, lat: float) -> None:
        with self._lock:
            self._coords = (lon, lat)
            self._ready = True
        log.debug("Live location updated: (%.5f, %.5f)", lon, lat)
