"""
Proximity alert engine. Warns when tracked points are near dengue clusters.

Tracked points are the live user location (key ``"LIVE"``) and every
user-saved map pointer (keyed by pointer name).  Each key is either
*armed* or *cooling*:

- armed → cooling when any cluster's reference point is closer than the
  proximity threshold; exactly one AlertEvent is emitted and the time is
  recorded;
- cooling → armed once ``cooldown_s`` has passed since that alert.  This
  is checked lazily on the next evaluation, there is no timer.

So however many clusters trigger in the window, a key alerts at most once
per cooldown.  Different keys are independent and may all alert in the
same cycle.

Data flow
─────────
  AlertScheduler tick
    → ProximityAlertEngine.evaluate()
        ClusterStore.clusters × (pointers + live location)
    → AlertBus.notify(event) → subscribers (history, UI banner, push)

Usage
-----
    bus = AlertBus()
    bus.register(history)
    engine = ProximityAlertEngine(store, location, bus, pointers=pointer_store)
    events = engine.evaluate()
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Union

from ..geo.cluster import DengueCluster
from ..geo.location import LocationProvider
from ..geo.projection import haversine_distance

log = logging.getLogger(__name__)

LIVE_KEY = "LIVE"


class AlertCategory(str, enum.Enum):
    INDOOR = "Indoor"
    OUTDOOR = "Outdoor"


@dataclass(frozen=True)
class AlertEvent:
    """One proximity alert.  Not retained by the engine."""
    title: str
    message: str
    timestamp: datetime
    category: AlertCategory
    source_key: str = ""


class AlertSubscriber(Protocol):
    def on_alert(self, event: AlertEvent) -> None:
        ...


class AlertBus:
    """Fans AlertEvents out to registered subscribers."""

    def __init__(self) -> None:
        self._subscribers: List[AlertSubscriber] = []

    def register(self, sub: AlertSubscriber) -> None:
        if sub not in self._subscribers:
            self._subscribers.append(sub)
        log.debug("Registered %s (total %d)", type(sub).__name__, len(self._subscribers))

    def unregister(self, sub: AlertSubscriber) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        log.debug("Subscriber count after remove: %d", len(self._subscribers))

    def __len__(self) -> int:
        return len(self._subscribers)

    def notify(self, event: AlertEvent) -> None:
        # Copy: a subscriber may unregister itself while being notified
        for sub in list(self._subscribers):
            try:
                sub.on_alert(event)
            except Exception as exc:
                log.error("Alert subscriber %s failed: %s", type(sub).__name__, exc)


class ClusterSource(Protocol):
    @property
    def clusters(self) -> List[DengueCluster]:
        ...


class PointerSource(Protocol):
    def list_pointers(self) -> Sequence:
        """Objects with ``name``, ``home_tag``, ``lon`` and ``lat``."""
        ...


class ProximityAlertEngine:
    """Evaluates tracked points against clusters with a per-key cooldown.

    ``threshold_m`` may be a number or a zero-argument callable; the
    callable form is re-read every cycle so a changed user preference
    takes effect on the next evaluation.
    """

    def __init__(
        self,
        clusters: ClusterSource,
        location: LocationProvider,
        bus: AlertBus,
        pointers: Optional[PointerSource] = None,
        threshold_m: Union[int, float, Callable[[], float]] = 500,
        cooldown_s: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self._clusters = clusters
        self._location = location
        self._bus = bus
        self._pointers = pointers
        self._threshold_m = threshold_m
        self._cooldown_s = cooldown_s
        self._clock = clock
        self._last_notified: Dict[str, float] = {}

    # ── Cooldown state ───────────────────────────────────────────────

    @property
    def threshold_m(self) -> float:
        t = self._threshold_m
        return t() if callable(t) else t

    def last_notified(self, key: str) -> Optional[float]:
        return self._last_notified.get(key)

    def is_armed(self, key: str, now: Optional[float] = None) -> bool:
        last = self._last_notified.get(key)
        if last is None:
            return True
        now = self._clock() if now is None else now
        return now - last >= self._cooldown_s

    def reset_cooldowns(self) -> None:
        self._last_notified.clear()

    # ── Evaluation ───────────────────────────────────────────────────

    def _load_pointers(self) -> list:
        if self._pointers is None:
            log.warning("No pointer store wired; evaluating live location only")
            return []
        try:
            pointers = list(self._pointers.list_pointers())
        except Exception as exc:
            log.error("Pointer store unavailable: %s", exc)
            return []
        log.debug("Loaded %d pointers for alert evaluation", len(pointers))
        return pointers

    def _fire(
        self,
        key: str,
        title: str,
        message: str,
        category: AlertCategory,
        now: float,
        out: List[AlertEvent],
    ) -> None:
        self._last_notified[key] = now
        event = AlertEvent(
            title=title,
            message=message,
            timestamp=datetime.fromtimestamp(now),
            category=category,
            source_key=key,
        )
        log.info("Triggering alert for %s: %s", key, message)
        out.append(event)
        self._bus.notify(event)

    def _location_ready(self) -> bool:
        try:
            return bool(self._location.is_ready())
        except Exception as exc:
            log.error("Live location provider failed, treating as not ready: %s", exc)
            return False

    def evaluate(self) -> List[AlertEvent]:
        """Run one evaluation cycle and return the events it emitted.

        Never raises: a failing collaborator or a bad pair is logged and
        skipped, and the events already emitted are still returned.
        """
        clusters = self._clusters.clusters
        if not clusters:
            log.info("No clusters available yet, skipping alert evaluation")
            return []
        if not self._location_ready():
            log.info("Live location not ready, skipping alert evaluation")
            return []
        try:
            threshold = float(self.threshold_m)
        except Exception as exc:
            log.error("Proximity threshold unavailable, skipping alert evaluation: %s", exc)
            return []

        events: List[AlertEvent] = []
        self._evaluate_pointers(self._load_pointers(), clusters, threshold, events)
        self._evaluate_live(clusters, threshold, events)

        log.info("Alert evaluation complete: %d alerts", len(events))
        return events

    def _evaluate_pointers(self, pointers, clusters, threshold, events) -> None:
        threshold_km = threshold / 1000.0
        for pointer in pointers:
            for cluster in clusters:
                try:
                    ref_lon, ref_lat = cluster.reference_point
                    distance = haversine_distance(pointer.lon, pointer.lat, ref_lon, ref_lat)
                    # NaN compares false, so a corrupt coordinate never fires
                    if not distance < threshold_km:
                        continue
                    now = self._clock()
                    key = pointer.name
                    if not self.is_armed(key, now):
                        continue
                    if pointer.home_tag:
                        title, category = f"Home Alert: {pointer.name}", AlertCategory.INDOOR
                    else:
                        title, category = f"Pointer Alert: {pointer.name}", AlertCategory.OUTDOOR
                    self._fire(
                        key,
                        title,
                        f"{cluster.area_name} cluster detected within {threshold:g}m "
                        f"of pointer '{pointer.name}'",
                        category,
                        now,
                        events,
                    )
                except Exception as exc:
                    log.warning(
                        "Skipping pointer %r vs cluster %s: %s",
                        getattr(pointer, "name", pointer),
                        getattr(cluster, "location_id", "?"), exc,
                    )

    def _evaluate_live(self, clusters, threshold, events) -> None:
        threshold_km = threshold / 1000.0
        try:
            user_lon, user_lat = self._location.current_coordinates()
        except Exception as exc:
            log.error("Live location unavailable, skipping live check: %s", exc)
            return

        for cluster in clusters:
            try:
                ref_lon, ref_lat = cluster.reference_point
                distance = haversine_distance(user_lon, user_lat, ref_lon, ref_lat)
                log.debug(
                    "Live location %.5f, %.5f → cluster %s: %.3f km (threshold %.3f km)",
                    user_lon, user_lat, cluster.location_id, distance, threshold_km,
                )
                if not distance < threshold_km:
                    continue
                now = self._clock()
                if not self.is_armed(LIVE_KEY, now):
                    continue
                self._fire(
                    LIVE_KEY,
                    "Nearby Dengue Cluster!",
                    f"{cluster.area_name} cluster detected within {threshold:g}m "
                    "of your current location",
                    AlertCategory.OUTDOOR,
                    now,
                    events,
                )
            except Exception as exc:
                log.warning(
                    "Skipping live location vs cluster %s: %s",
                    getattr(cluster, "location_id", "?"), exc,
                )
