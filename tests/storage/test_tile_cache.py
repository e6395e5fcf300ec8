"""
Tests for the gzip tile cache.
"""

import gzip
import threading

import pytest

from idenguefy.storage.tile_cache import TileCache, TileKey


@pytest.fixture
def cache(tmp_path):
    return TileCache(tmp_path / "Cache")


KEY = TileKey(25837, 16250, 15)


class TestTileCacheReadWrite:
    """Tests for get / put"""

    def test_miss_on_empty_cache(self, cache):
        assert cache.get(KEY) is None
        assert not cache.contains(KEY)

    def test_put_then_get(self, cache, png_bytes):
        assert cache.put(KEY, png_bytes) is True
        assert cache.get(KEY) == png_bytes
        assert cache.contains(KEY)

    def test_entry_is_gzip_on_disk(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        path = cache.path_for(KEY)

        assert path == cache.root / "z15" / "25837_16250.gz"
        assert gzip.decompress(path.read_bytes()) == png_bytes

    def test_zoom_levels_do_not_collide(self, cache):
        cache.put(TileKey(1, 1, 14), b"fourteen")
        cache.put(TileKey(1, 1, 15), b"fifteen")
        assert cache.get(TileKey(1, 1, 14)) == b"fourteen"
        assert cache.get(TileKey(1, 1, 15)) == b"fifteen"

    def test_overwrite(self, cache):
        cache.put(KEY, b"old")
        cache.put(KEY, b"new")
        assert cache.get(KEY) == b"new"

    def test_empty_payload_rejected(self, cache):
        assert cache.put(KEY, b"") is False
        assert cache.get(KEY) is None

    def test_no_temp_files_left(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        leftovers = [p for p in cache.path_for(KEY).parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_pending_key_is_a_miss(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        cache._mark_pending(KEY)
        try:
            assert cache.is_pending(KEY)
            assert cache.get(KEY) is None
            assert not cache.contains(KEY)
        finally:
            cache._clear_pending(KEY)
        assert cache.get(KEY) == png_bytes

    def test_pending_cleared_after_put(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        assert not cache.is_pending(KEY)


class TestTileCacheErrors:
    """Disk problems degrade to a miss or a no-op"""

    def test_corrupt_entry_is_a_miss(self, cache):
        path = cache.path_for(KEY)
        path.parent.mkdir(parents=True)
        path.write_bytes(b"definitely not gzip")
        assert cache.get(KEY) is None

    def test_truncated_entry_is_a_miss(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        path = cache.path_for(KEY)
        path.write_bytes(path.read_bytes()[:20])
        assert cache.get(KEY) is None

    def test_unwritable_directory_is_a_noop(self, cache, png_bytes):
        # a regular file where the zoom directory should be
        (cache.root / "z15").write_bytes(b"")
        assert cache.put(KEY, png_bytes) is False
        assert not cache.is_pending(KEY)
        assert cache.get(KEY) is None


class TestTileCacheConcurrency:
    """Readers never observe a partially written entry"""

    def test_concurrent_put_get_never_torn(self, cache):
        payloads = [bytes([i]) * 200_000 for i in (1, 2)]
        cache.put(KEY, payloads[0])
        stop = threading.Event()
        seen = []

        def writer():
            i = 0
            while not stop.is_set():
                cache.put(KEY, payloads[i % 2])
                i += 1

        def reader():
            for _ in range(200):
                seen.append(cache.get(KEY))

        w = threading.Thread(target=writer)
        readers = [threading.Thread(target=reader) for _ in range(4)]
        w.start()
        for r in readers:
            r.start()
        for r in readers:
            r.join()
        stop.set()
        w.join()

        assert seen
        for data in seen:
            assert data is None or data in payloads


class TestTileCacheMaintenance:
    """Tests for clear() and stats()"""

    def test_clear_removes_entries_and_keeps_root(self, cache, png_bytes):
        for x in range(3):
            cache.put(TileKey(x, 0, 15), png_bytes)
        cache.put(TileKey(0, 0, 14), png_bytes)

        assert cache.clear() == 4
        assert cache.root.is_dir()
        assert list(cache.root.iterdir()) == []
        assert cache.get(TileKey(0, 0, 15)) is None

    def test_put_after_clear(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        cache.clear()
        assert cache.put(KEY, png_bytes)
        assert cache.get(KEY) == png_bytes

    def test_clear_empty_cache(self, cache):
        assert cache.clear() == 0
        assert cache.root.is_dir()

    def test_stats(self, cache, png_bytes):
        cache.put(KEY, png_bytes)
        cache.put(TileKey(1, 2, 15), png_bytes)
        stats = cache.stats()

        assert stats["cached_tiles"] == 2
        assert stats["pending_writes"] == 0
        assert stats["cache_dir"] == str(cache.root)
        assert stats["total_mb"] >= 0
