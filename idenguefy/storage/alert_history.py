"""
Saved alert history: an AlertBus subscriber that persists every alert.

Alerts are stored as a JSON list, oldest first, with ISO 8601
timestamps.  Storage problems are logged; the alert still reaches the
other subscribers.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import List

from ..alerts.engine import AlertEvent

log = logging.getLogger(__name__)


@dataclass
class SavedAlert:
    alert_id: str
    title: str
    message: str
    timestamp: str          # ISO 8601
    category: str           # "Indoor" / "Outdoor"

    @classmethod
    def from_event(cls, event: AlertEvent) -> "SavedAlert":
        return cls(
            alert_id=uuid.uuid4().hex,
            title=event.title,
            message=event.message,
            timestamp=event.timestamp.isoformat(),
            category=event.category.value,
        )


_FIELDS = {f.name for f in fields(SavedAlert)}


class AlertHistory:
    """Append-only alert log backed by a JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._alerts: List[SavedAlert] = self._load()
        log.info("Loaded %d saved alerts from %s", len(self._alerts), self._path)

    def _load(self) -> List[SavedAlert]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return [SavedAlert(**{k: v for k, v in d.items() if k in _FIELDS}) for d in data]
        except (OSError, ValueError, TypeError) as exc:
            log.warning("Failed to load alert history: %s", exc)
            return []

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps([asdict(a) for a in self._alerts], indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as exc:
            log.warning("Failed to save alert history: %s", exc)

    def on_alert(self, event: AlertEvent) -> None:
        saved = SavedAlert.from_event(event)
        with self._lock:
            self._alerts.append(saved)
            self._save()
        log.debug("Saved alert: %s - %s", saved.title, saved.message)

    def list_alerts(self) -> List[SavedAlert]:
        with self._lock:
            return list(self._alerts)

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._save()
        log.info("Cleared all saved alerts")
