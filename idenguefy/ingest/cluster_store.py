"""
Latest snapshot of dengue clusters.

A refresh replaces the whole list; there is no incremental merge.  If a
refresh fails the previous snapshot stays in place, so readers never see
an empty list just because the network dropped.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

from ..geo.cluster import DengueCluster
from .cluster_client import ClusterSource

log = logging.getLogger(__name__)


class ClusterStore:

    def __init__(self, source: ClusterSource):
        self._source = source
        self._lock = threading.Lock()
        self._clusters: List[DengueCluster] = []
        self._last_refreshed: Optional[float] = None

    @property
    def clusters(self) -> List[DengueCluster]:
        with self._lock:
            return list(self._clusters)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._clusters

    @property
    def last_refreshed(self) -> Optional[float]:
        return self._last_refreshed

    def get(self, location_id: str) -> Optional[DengueCluster]:
        with self._lock:
            return next((c for c in self._clusters if c.location_id == location_id), None)

    def refresh(self) -> bool:
        """Fetch a fresh snapshot.  Returns False (snapshot unchanged) on failure."""
        log.info("Fetching dengue clusters...")
        try:
            fresh = list(self._source.fetch_clusters())
        except Exception as exc:
            with self._lock:
                kept = len(self._clusters)
            log.error("Cluster refresh failed, keeping %d cached clusters: %s", kept, exc)
            return False

        with self._lock:
            self._clusters = fresh
            self._last_refreshed = time.time()
        log.info("Finished fetching clusters: %d loaded", len(fresh))
        return True
