"""
Tests for the periodic alert scheduler.
"""

import threading
import time

from idenguefy.alerts.engine import AlertBus, ProximityAlertEngine
from idenguefy.alerts.scheduler import AlertScheduler
from idenguefy.storage.pointer_store import MapPointer


class _CountingEngine:
    def __init__(self, block=None):
        self.calls = 0
        self.block = block
        self.entered = threading.Event()

    def evaluate(self):
        self.calls += 1
        self.entered.set()
        if self.block is not None:
            self.block.wait(5)
        return []


class _FailingEngine:
    def evaluate(self):
        raise RuntimeError("boom")


class _CountingStore:
    def __init__(self):
        self.refreshes = 0

    def refresh(self):
        self.refreshes += 1
        return True


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestTick:

    def test_tick_runs_engine(self):
        engine = _CountingEngine()
        assert AlertScheduler(engine).tick() == []
        assert engine.calls == 1

    def test_overlapping_tick_is_skipped(self):
        release = threading.Event()
        engine = _CountingEngine(block=release)
        scheduler = AlertScheduler(engine)

        first = threading.Thread(target=scheduler.tick)
        first.start()
        assert engine.entered.wait(5)

        assert scheduler.tick() is None
        release.set()
        first.join(5)
        assert engine.calls == 1

    def test_engine_error_is_contained(self):
        assert AlertScheduler(_FailingEngine()).tick() == []


class TestRefresh:

    def test_refresh_only_when_due(self):
        store = _CountingStore()
        scheduler = AlertScheduler(_CountingEngine(), store, cluster_refresh_s=3600)

        scheduler.refresh_clusters_if_due()
        scheduler.refresh_clusters_if_due()

        assert store.refreshes == 1

    def test_refresh_disabled(self):
        store = _CountingStore()
        AlertScheduler(_CountingEngine(), store, cluster_refresh_s=0).refresh_clusters_if_due()
        assert store.refreshes == 0


class TestLifecycle:

    def test_start_and_stop(self):
        engine = _CountingEngine()
        store = _CountingStore()
        scheduler = AlertScheduler(engine, store, eval_interval_s=0.01)

        scheduler.start()
        try:
            assert scheduler.running
            assert _wait_for(lambda: engine.calls >= 3)
        finally:
            scheduler.stop(timeout=5)

        assert not scheduler.running
        assert store.refreshes == 1

    def test_start_twice_is_harmless(self):
        scheduler = AlertScheduler(_CountingEngine(), eval_interval_s=0.01)
        scheduler.start()
        thread = scheduler._thread
        scheduler.start()
        assert scheduler._thread is thread
        scheduler.stop(timeout=5)


class TestTickWithEngine:

    def test_location_failure_does_not_drop_pointer_alerts(self, clock, cluster_near_raffles):
        class GlitchyGps:
            def is_ready(self):
                return True

            def current_coordinates(self):
                raise RuntimeError("gps glitch")

        class Clusters:
            clusters = [cluster_near_raffles]

        class Pointers:
            def list_pointers(self):
                return [MapPointer("0", "Office", 103.85, 1.3005)]

        engine = ProximityAlertEngine(
            Clusters(), GlitchyGps(), AlertBus(), pointers=Pointers(), clock=clock,
        )

        events = AlertScheduler(engine).tick()

        assert [e.source_key for e in events] == ["Office"]
