"""
Application context. Owns every long-lived service.

Services are built explicitly from Settings and torn down in reverse
order by ``stop()``; nothing is created on first access.  The UI layer
(or the CLI) holds one AppContext and passes its pieces around.

Usage
-----
    with AppContext(load_settings()) as ctx:
        ctx.bus.register(my_banner)
        ctx.tile_fetcher.fetch_grid(ctx.map_grid, ctx.settings.zoom)
"""
from __future__ import annotations

import logging
from typing import Optional

from .alerts.engine import AlertBus, ProximityAlertEngine
from .alerts.scheduler import AlertScheduler
from .config import Settings
from .geo.location import LocationProvider, StaticLocation
from .geo.projection import SINGAPORE_BOUNDS, TileBounds, find_tile_bounds
from .ingest import make_session
from .ingest.cluster_client import ClusterSource, NeaClusterClient
from .ingest.cluster_store import ClusterStore
from .ingest.search_client import MapTilerSearchClient, SearchSource
from .ingest.tile_client import MapTilerTileClient, TileSource
from .ingest.tile_fetcher import TileFetchCoordinator
from .storage.alert_history import AlertHistory
from .storage.pointer_store import PointerStore
from .storage.tile_cache import TileCache

log = logging.getLogger(__name__)


class AppContext:

    def __init__(
        self,
        settings: Settings,
        location: Optional[LocationProvider] = None,
        tile_source: Optional[TileSource] = None,
        cluster_source: Optional[ClusterSource] = None,
        search_source: Optional[SearchSource] = None,
    ):
        self.settings = settings
        self._session = None
        if tile_source is None:
            self._session = make_session(pool_size=settings.max_fetch_workers)
            tile_source = MapTilerTileClient(
                api_key=settings.maptiler_api_key,
                style=settings.maptiler_style,
                timeout=settings.http_timeout_s,
                session=self._session,
            )
        if cluster_source is None:
            cluster_source = NeaClusterClient(
                dataset_id=settings.nea_dataset_id,
                timeout=settings.http_timeout_s,
            )

        self.tile_cache = TileCache(settings.cache_dir)
        self.tile_fetcher = TileFetchCoordinator(
            self.tile_cache,
            tile_source,
            max_workers=settings.max_fetch_workers,
            pace_size=settings.tile_batch_pace_size,
            pace_delay_s=settings.tile_pace_delay_s,
        )
        self.map_grid: TileBounds = find_tile_bounds(SINGAPORE_BOUNDS, settings.zoom)
        self.search: SearchSource = search_source or MapTilerSearchClient(
            api_key=settings.maptiler_api_key,
            country=settings.search_country,
            limit=settings.search_limit,
            timeout=settings.http_timeout_s,
            session=self._session,
        )

        self.cluster_store = ClusterStore(cluster_source)
        self.location = location or StaticLocation()
        self.pointers = PointerStore(settings.data_dir / "pointers.json")
        self.history = AlertHistory(settings.data_dir / "alerts.json")

        self.bus = AlertBus()
        self.bus.register(self.history)
        self.engine = ProximityAlertEngine(
            self.cluster_store,
            self.location,
            self.bus,
            pointers=self.pointers,
            threshold_m=lambda: self.settings.proximity_threshold_m,
            cooldown_s=settings.cooldown_s,
        )
        self.scheduler = AlertScheduler(
            self.engine,
            self.cluster_store,
            eval_interval_s=settings.eval_interval_s,
            cluster_refresh_s=settings.cluster_refresh_s,
        )

    def set_threshold(self, meters: int) -> None:
        """Change the proximity threshold; used from the next evaluation on."""
        if meters <= 0:
            raise ValueError(f"Threshold must be positive, got {meters}")
        self.settings.proximity_threshold_m = meters
        log.info("Proximity threshold set to %dm", meters)

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()
        self.bus.unregister(self.history)
        if self._session is not None:
            self._session.close()
            self._session = None
        log.info("Idenguefy context stopped")

    def __enter__(self) -> "AppContext":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
