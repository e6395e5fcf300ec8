"""
Gzip-compressed disk cache for raster map tiles.

One file per tile, laid out as ``<root>/z{zoom}/{x}_{y}.gz``.  A
Singapore-wide prefetch at zoom 15 is a few thousand tiles, so every
entry is compressed.

Concurrency
───────────
Many fetch workers hit the cache at once.  Two rules keep readers from
ever seeing a torn file:

- keys being written sit in a pending set (one lock guards it) and a
  ``get`` for a pending key is a miss without touching disk;
- writes go to a unique temp file in the same directory and are moved
  into place with ``os.replace``, which is atomic on one filesystem.

The cache is an optimisation only.  Disk errors are logged and turn into
a miss (``get``) or a no-op (``put``); nothing is raised to the caller.

Usage
-----
    cache = TileCache(Path("~/.cache/Idenguefy/Cache").expanduser())
    key = TileKey(25837, 16250, 15)
    if cache.get(key) is None:
        cache.put(key, png_bytes)
"""
from __future__ import annotations

import gzip
import logging
import os
import shutil
import tempfile
import threading
import zlib
from pathlib import Path
from typing import Optional, Set

from ..geo.projection import TileKey

log = logging.getLogger(__name__)

__all__ = ["TileCache", "TileKey"]

_SUFFIX = ".gz"


class TileCache:
    """Key-addressed, compressed tile blob store."""

    def __init__(self, root: Path, compresslevel: int = 6):
        self._root = Path(root)
        self._compresslevel = compresslevel
        self._pending_lock = threading.Lock()
        self._pending: Set[TileKey] = set()
        self._ensure_root()

    @property
    def root(self) -> Path:
        return self._root

    def _ensure_root(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("Cannot create tile cache directory %s: %s", self._root, exc)

    def path_for(self, key: TileKey) -> Path:
        return self._root / f"z{key.zoom}" / f"{key.x}_{key.y}{_SUFFIX}"

    # ── Pending write set ────────────────────────────────────────────

    def is_pending(self, key: TileKey) -> bool:
        with self._pending_lock:
            return key in self._pending

    def _mark_pending(self, key: TileKey) -> None:
        with self._pending_lock:
            self._pending.add(key)

    def _clear_pending(self, key: TileKey) -> None:
        with self._pending_lock:
            self._pending.discard(key)

    # ── Read / write ─────────────────────────────────────────────────

    def get(self, key: TileKey) -> Optional[bytes]:
        """Return the cached tile bytes, or None on a miss."""
        if self.is_pending(key):
            return None

        path = self.path_for(key)
        try:
            with gzip.open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except (OSError, EOFError, zlib.error) as exc:
            # gzip.BadGzipFile is an OSError subclass
            log.warning("Tile cache read failed for %s (%s), treating as miss", key, exc)
            return None

    def put(self, key: TileKey, data: bytes) -> bool:
        """Compress and store *data*.  Returns True if the entry was written."""
        if not data:
            log.warning("Refusing to cache empty payload for tile %s", key)
            return False

        self._mark_pending(key)
        tmp_name: Optional[str] = None
        try:
            path = self.path_for(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{key.x}_{key.y}.", suffix=".tmp", dir=path.parent,
            )
            with os.fdopen(fd, "wb") as raw, gzip.GzipFile(
                fileobj=raw, mode="wb", compresslevel=self._compresslevel,
            ) as gz:
                gz.write(data)
            os.replace(tmp_name, path)
            tmp_name = None
            log.debug("Cached tile %s (%d bytes raw)", key, len(data))
            return True
        except OSError as exc:
            log.error("Failed to cache tile %s: %s", key, exc)
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            self._clear_pending(key)

    def contains(self, key: TileKey) -> bool:
        """True if a committed entry exists and is not being rewritten."""
        return not self.is_pending(key) and self.path_for(key).exists()

    # ── Maintenance ──────────────────────────────────────────────────

    def _entries(self):
        return self._root.glob(f"z*/*{_SUFFIX}")

    def clear(self) -> int:
        """Delete every cached tile.  The (empty) root always exists afterwards.

        Returns the number of entries deleted.
        """
        count = 0
        try:
            count = sum(1 for _ in self._entries())
            if self._root.exists():
                shutil.rmtree(self._root)
            log.info("Cleared tile cache: %d tiles deleted from %s", count, self._root)
        except OSError as exc:
            log.error("Error clearing tile cache %s: %s", self._root, exc)
        finally:
            self._ensure_root()
        return count

    def stats(self) -> dict:
        """Return cache statistics."""
        files = list(self._entries())
        total_bytes = 0
        for f in files:
            try:
                total_bytes += f.stat().st_size
            except OSError:
                pass
        with self._pending_lock:
            pending = len(self._pending)
        return {
            "cached_tiles": len(files),
            "pending_writes": pending,
            "total_mb": round(total_bytes / (1024 * 1024), 1),
            "cache_dir": str(self._root),
        }
