"""
Cache-or-fetch coordinator for a rectangular grid of map tiles.

For every tile in the grid:

  TileCache.get()  ── hit ──→  decode  →  TileResult(source="cache")
        │
       miss
        ↓
  TileSource.fetch_tile()  → decode → TileCache.put() (unless a write
        │                             for that key is already pending)
        │                  → TileResult(source="remote")
     failure
        ↓
  TileResult(error=...)      the rest of the grid carries on

Tiles run on a bounded thread pool, so completion order is arbitrary and
``on_tile`` callbacks arrive out of order.  After every ``pace_size``
remote requests (cache hits do not count) the next request waits
``pace_delay_s``, and every other worker waits behind it, to stay inside
the remote API quota.  Work that nobody is waiting for any more still runs to
completion and fills the cache.

Usage
-----
    fetcher = TileFetchCoordinator(cache, MapTilerTileClient(api_key))
    grid = find_tile_bounds(SINGAPORE_BOUNDS, zoom=15)
    report = fetcher.fetch_grid(grid, zoom=15, on_tile=render)
    print(report.summary())
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from io import BytesIO
from typing import Callable, Dict, Optional

from PIL import Image

from ..geo.projection import TileBounds, TileKey
from ..storage.tile_cache import TileCache
from .tile_client import TileSource

log = logging.getLogger(__name__)

SOURCE_CACHE = "cache"
SOURCE_REMOTE = "remote"


@dataclass
class TileResult:
    """Outcome for one grid cell."""
    key: TileKey
    image: Optional[Image.Image] = None
    source: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GridReport:
    total: int = 0
    from_cache: int = 0
    from_remote: int = 0
    failed: int = 0
    results: Dict[TileKey, TileResult] = field(default_factory=dict)

    def add(self, result: TileResult) -> None:
        self.results[result.key] = result
        if not result.ok:
            self.failed += 1
        elif result.source == SOURCE_CACHE:
            self.from_cache += 1
        else:
            self.from_remote += 1

    def summary(self) -> str:
        return (
            f"{self.total} tiles: {self.from_cache} cached, "
            f"{self.from_remote} fetched, {self.failed} failed"
        )


def decode_tile(data: bytes) -> Image.Image:
    """Decode raster bytes into a fully loaded PIL image."""
    img = Image.open(BytesIO(data))
    img.load()
    return img


class TileFetchCoordinator:

    def __init__(
        self,
        cache: TileCache,
        source: TileSource,
        max_workers: int = 8,
        pace_size: int = 1000,
        pace_delay_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if pace_size < 1:
            raise ValueError(f"pace_size must be >= 1, got {pace_size}")
        self._cache = cache
        self._source = source
        self._max_workers = max_workers
        self._pace_size = pace_size
        self._pace_delay_s = pace_delay_s
        self._sleep = sleep
        self._pace_lock = threading.Lock()
        self._remote_requests = 0

    @property
    def remote_requests(self) -> int:
        """Remote tile requests issued so far by this coordinator."""
        with self._pace_lock:
            return self._remote_requests

    def _pace(self) -> None:
        # Sleeping under the lock holds back every worker, not just this one
        with self._pace_lock:
            issued = self._remote_requests
            if issued and issued % self._pace_size == 0:
                log.debug("Pacing tile requests after %d remote requests", issued)
                self._sleep(self._pace_delay_s)
            self._remote_requests = issued + 1

    def fetch_one(self, key: TileKey, keep_image: bool = True) -> TileResult:
        """Resolve a single tile from cache or remote.  Never raises."""
        data = self._cache.get(key)
        if data is not None:
            try:
                img = decode_tile(data)
                return TileResult(key, img if keep_image else None, SOURCE_CACHE)
            except Exception as exc:
                log.warning("Cached tile %s is not a valid image (%s), refetching", key, exc)

        self._pace()
        try:
            data = self._source.fetch_tile(key.x, key.y, key.zoom)
        except Exception as exc:
            log.debug("Tile %s fetch failed: %s", key, exc)
            return TileResult(key, error=str(exc))

        try:
            img = decode_tile(data)
        except Exception as exc:
            log.warning("Tile %s: remote returned undecodable data (%s)", key, exc)
            return TileResult(key, error=f"undecodable tile data: {exc}")

        # Another worker already writing this key: its copy is as good as ours
        if not self._cache.is_pending(key):
            self._cache.put(key, data)

        return TileResult(key, img if keep_image else None, SOURCE_REMOTE)

    def fetch_grid(
        self,
        grid: TileBounds,
        zoom: int,
        on_tile: Optional[Callable[[TileResult], None]] = None,
        keep_images: bool = True,
    ) -> GridReport:
        """Resolve every tile in *grid*.

        Parameters
        ----------
        grid : TileBounds
            Inclusive tile rectangle.
        zoom : int
            Zoom level of the rectangle.
        on_tile : callable, optional
            Called with each TileResult as it completes (any order).
        keep_images : bool
            Keep decoded images in the report.  Turn off for cache
            warm-up runs over thousands of tiles.
        """
        report = GridReport(total=grid.count)
        if report.total == 0:
            return report

        log.info(
            "Fetching %d tiles at zoom %d (x %d..%d, y %d..%d, %d workers)",
            report.total, zoom, grid.x_min, grid.x_max, grid.y_min, grid.y_max,
            self._max_workers,
        )

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = {}
            for key in grid.keys(zoom):
                futures[executor.submit(self.fetch_one, key, keep_images)] = key

            done = 0
            for future in as_completed(futures):
                key = futures[future]
                try:
                    result = future.result()
                except Exception as exc:
                    result = TileResult(key, error=str(exc))
                report.add(result)

                if on_tile is not None:
                    try:
                        on_tile(result)
                    except Exception as exc:
                        log.error("Tile callback failed for %s: %s", key, exc)

                done += 1
                if done % 500 == 0:
                    log.info(
                        "  tile progress: %d/%d (%.0f%%)",
                        done, report.total, done / report.total * 100,
                    )

        log.info("Tile fetch complete: %s", report.summary())
        return report
