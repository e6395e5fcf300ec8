"""
MapTiler raster tile client.

Fetches one slippy-map tile as raw image bytes:

    https://api.maptiler.com/maps/{style}/{zoom}/{x}/{y}.{fmt}?key=API_KEY

The free plan is quota-limited, so keep prefetches at zoom ≤ 15 and let
the TileFetchCoordinator pace the requests.

Usage
-----
    client = MapTilerTileClient(api_key="...")
    png = client.fetch_tile(25837, 16250, 15)
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from ..errors import TileFetchError
from . import fetch_with_retry, make_session

log = logging.getLogger(__name__)

_BASE_URL = "https://api.maptiler.com/maps"


class TileSource(Protocol):
    def fetch_tile(self, x: int, y: int, zoom: int) -> bytes:
        """Raw raster bytes for one tile; raises TileFetchError."""
        ...


class MapTilerTileClient:
    """Raster tiles from the MapTiler Maps API."""

    def __init__(
        self,
        api_key: str,
        style: str = "dataviz",
        fmt: str = "png",
        timeout: float = 15.0,
        retries: int = 1,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            log.warning("No MapTiler API key configured; tile requests will be rejected")
        self._api_key = api_key
        self._style = style
        self._fmt = fmt
        self._timeout = timeout
        self._retries = retries
        self._session = session or make_session()

    def tile_url(self, x: int, y: int, zoom: int) -> str:
        return f"{_BASE_URL}/{self._style}/{zoom}/{x}/{y}.{self._fmt}"

    def fetch_tile(self, x: int, y: int, zoom: int) -> bytes:
        try:
            resp = fetch_with_retry(
                self.tile_url(x, y, zoom),
                params={"key": self._api_key},
                timeout=self._timeout,
                retries=self._retries,
                backoff=1.0,
                session=self._session,
            )
        except requests.RequestException as exc:
            raise TileFetchError(f"Tile {zoom}/{x}/{y}: {exc}") from exc

        if not resp.content:
            raise TileFetchError(f"Tile {zoom}/{x}/{y}: empty response")
        log.debug("Fetched tile %d/%d/%d (%d bytes)", zoom, x, y, len(resp.content))
        return resp.content

    def close(self) -> None:
        self._session.close()
