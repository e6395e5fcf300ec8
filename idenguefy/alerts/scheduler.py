"""
Periodic driver for the proximity alert engine.

A single daemon thread wakes every ``eval_interval_s`` seconds, refreshes
the cluster snapshot when it is due, and runs one evaluation.  Cycles
never overlap: if an evaluation is still running when another tick
arrives (e.g. ``tick()`` called from a UI thread), the new tick is
skipped rather than queued.

Usage
-----
    scheduler = AlertScheduler(engine, cluster_store, eval_interval_s=10)
    scheduler.start()
    ...
    scheduler.stop()
"""
from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

from ..ingest.cluster_store import ClusterStore
from .engine import AlertEvent, ProximityAlertEngine

log = logging.getLogger(__name__)


class AlertScheduler:

    def __init__(
        self,
        engine: ProximityAlertEngine,
        cluster_store: Optional[ClusterStore] = None,
        eval_interval_s: float = 10.0,
        cluster_refresh_s: float = 3600.0,
    ):
        self._engine = engine
        self._store = cluster_store
        self._interval = eval_interval_s
        self._refresh_every = cluster_refresh_s
        self._cycle_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._next_refresh = 0.0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ── Control ───────────────────────────────────────────────────────

    def start(self) -> None:
        """Start periodic evaluation.  The first cycle runs immediately."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="alert-scheduler",
        )
        self._thread.start()
        log.info(
            "AlertScheduler started (eval %ds, cluster refresh %ds)",
            self._interval, self._refresh_every,
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.info("AlertScheduler stopped")

    # ── Cycle ────────────────────────────────────────────────────────

    def refresh_clusters_if_due(self) -> None:
        if self._store is None or self._refresh_every <= 0:
            return
        now = time.monotonic()
        if now < self._next_refresh:
            return
        self._next_refresh = now + self._refresh_every
        self._store.refresh()

    def tick(self) -> Optional[List[AlertEvent]]:
        """Run one evaluation.  Returns None if a cycle was already running."""
        if not self._cycle_lock.acquire(blocking=False):
            log.warning("Previous alert evaluation still running, skipping this cycle")
            return None
        try:
            return self._engine.evaluate()
        except Exception as exc:
            log.error("Alert evaluation failed: %s", exc)
            return []
        finally:
            self._cycle_lock.release()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.refresh_clusters_if_due()
            except Exception as exc:
                log.error("Cluster refresh error: %s", exc)
            self.tick()
            self._stop.wait(self._interval)
