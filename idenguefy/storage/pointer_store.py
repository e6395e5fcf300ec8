"""
User-saved map pointers, persisted as JSON.

Pointer ids are positional: they are always "0" … "n-1" and are
renumbered after a delete.  ``list_pointers()`` re-reads the file every
time so edits made by another process (the app UI) are seen by the next
alert evaluation.

Usage
-----
    store = PointerStore(Path("data/pointers.json"))
    store.create("Home", lon=103.85, lat=1.30, home_tag=True)
    for p in store.list_pointers():
        print(p.map_id, p.name, p.coordinates)
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import List, Optional, Tuple

log = logging.getLogger(__name__)


@dataclass
class MapPointer:
    """A user-placed pointer on the map."""
    map_id: str
    name: str
    lon: float
    lat: float
    home_tag: bool = False
    area_name: str = ""
    note: str = ""

    @property
    def coordinates(self) -> Tuple[float, float]:
        return self.lon, self.lat


_FIELDS = {f.name for f in fields(MapPointer)}
_EDITABLE = _FIELDS - {"map_id"}


class PointerStore:
    """CRUD over a JSON file of MapPointers."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> List[MapPointer]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return [
                MapPointer(**{k: v for k, v in d.items() if k in _FIELDS})
                for d in data
            ]
        except (OSError, ValueError, TypeError) as exc:
            log.warning("Failed to load pointers from %s: %s", self._path, exc)
            return []

    def _save(self, pointers: List[MapPointer]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps([asdict(p) for p in pointers], indent=2) + "\n",
                encoding="utf-8",
            )
            log.debug("Saved %d pointers to %s", len(pointers), self._path)
        except OSError as exc:
            log.warning("Failed to save pointers to %s: %s", self._path, exc)

    def list_pointers(self) -> List[MapPointer]:
        with self._lock:
            return self._load()

    def create(
        self,
        name: str,
        lon: float,
        lat: float,
        home_tag: bool = False,
        area_name: str = "",
        note: str = "",
    ) -> MapPointer:
        with self._lock:
            pointers = self._load()
            pointer = MapPointer(
                map_id=str(len(pointers)),
                name=name,
                lon=lon,
                lat=lat,
                home_tag=home_tag,
                area_name=area_name,
                note=note,
            )
            pointers.append(pointer)
            self._save(pointers)
        log.info("Created pointer '%s' at lon=%.5f, lat=%.5f", name, lon, lat)
        return pointer

    def read(self, map_id: str) -> Optional[MapPointer]:
        with self._lock:
            return next((p for p in self._load() if p.map_id == map_id), None)

    def edit(self, map_id: str, **changes) -> bool:
        """Update fields of one pointer.  Returns False if it does not exist."""
        unknown = set(changes) - _EDITABLE
        if unknown:
            raise ValueError(f"Cannot edit pointer fields: {sorted(unknown)}")

        with self._lock:
            pointers = self._load()
            pointer = next((p for p in pointers if p.map_id == map_id), None)
            if pointer is None:
                log.warning("Pointer with ID %s not found", map_id)
                return False
            for key, value in changes.items():
                if value is not None:
                    setattr(pointer, key, value)
            self._save(pointers)
        log.info("Edited pointer %s", map_id)
        return True

    def delete(self, map_id: str) -> bool:
        """Remove one pointer and renumber the rest.  False if not found."""
        with self._lock:
            pointers = self._load()
            pointer = next((p for p in pointers if p.map_id == map_id), None)
            if pointer is None:
                log.warning("Pointer with ID %s not found", map_id)
                return False
            pointers.remove(pointer)
            for i, p in enumerate(pointers):
                p.map_id = str(i)
            self._save(pointers)
        log.info("Deleted pointer '%s' (was ID %s)", pointer.name, map_id)
        return True
