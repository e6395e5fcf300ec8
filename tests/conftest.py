"""
Idenguefy Test Configuration

Shared pytest fixtures and in-memory fakes for the remote collaborators.
"""

import io
import threading

import pytest
from PIL import Image

from idenguefy.errors import ClusterFetchError, TileFetchError
from idenguefy.geo.cluster import DengueCluster


def make_png(color=(200, 30, 30), size=8) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (size, size), color).save(buf, format="PNG")
    return buf.getvalue()


class FakeTileSource:
    """Records calls; fails for keys listed in ``fail``."""

    def __init__(self, fail=(), payload=None):
        self.fail = set(fail)
        self.payload = payload
        self.calls = []
        self._lock = threading.Lock()

    def fetch_tile(self, x, y, zoom):
        with self._lock:
            self.calls.append((x, y, zoom))
        if (x, y) in self.fail:
            raise TileFetchError(f"Tile {zoom}/{x}/{y}: HTTP 503")
        return self.payload if self.payload is not None else make_png()


class FakeClusterSource:
    """Returns queued results in order; an Exception instance is raised."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    def fetch_clusters(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def png_bytes():
    """A small valid PNG tile"""
    return make_png()


@pytest.fixture
def tile_source():
    return FakeTileSource()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cluster_near_raffles():
    """Small cluster whose first vertex is (103.85, 1.30)"""
    return DengueCluster(
        location_id="0",
        case_size=12,
        area_name="Raffles Place",
        coordinates=[
            (103.85, 1.30),
            (103.8502, 1.30),
            (103.8502, 1.3002),
            (103.85, 1.3002),
            (103.85, 1.30),
        ],
    )


@pytest.fixture
def fake_cluster_source_cls():
    return FakeClusterSource


@pytest.fixture
def cluster_fetch_error():
    return ClusterFetchError("poll-download: HTTP 503")


@pytest.fixture
def sample_geojson():
    """NEA-style FeatureCollection with one Polygon and one MultiPolygon"""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"CASE_SIZE": 3, "LOCALITY": "Bedok North Ave 3"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[
                        [103.93, 1.33, 0.0],
                        [103.94, 1.33, 0.0],
                        [103.94, 1.34, 0.0],
                        [103.93, 1.33, 0.0],
                    ]],
                },
            },
            {
                "type": "Feature",
                "properties": {"CASE_SIZE": 27, "LOCALITY": "Tampines St 81"},
                "geometry": {
                    "type": "MultiPolygon",
                    "coordinates": [
                        [
                            [[103.94, 1.35], [103.95, 1.35], [103.95, 1.36], [103.94, 1.35]],
                        ],
                        [
                            [[103.96, 1.35], [103.98, 1.35], [103.98, 1.37], [103.96, 1.35]],
                            [[103.97, 1.355], [103.975, 1.355], [103.975, 1.36], [103.97, 1.355]],
                        ],
                    ],
                },
            },
        ],
    }
