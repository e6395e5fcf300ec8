"""
NEA dengue cluster client (data.gov.sg).

The open-data API hands out datasets in two steps:

1. ``GET .../datasets/{id}/poll-download`` returns JSON with a
   short-lived download URL (``{"code": 0, "data": {"url": ...}}``).
2. ``GET <url>`` returns the GeoJSON FeatureCollection itself.

Each feature carries ``CASE_SIZE`` and ``LOCALITY`` properties and a
Polygon or MultiPolygon outline.

Usage
-----
    client = NeaClusterClient()
    clusters = client.fetch_clusters()
"""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol

import requests

from ..errors import ClusterFetchError
from ..geo.cluster import DengueCluster, clusters_from_geojson
from . import fetch_with_retry

log = logging.getLogger(__name__)

_BASE_URL = "https://api-open.data.gov.sg/v1/public/api/datasets"
DENGUE_CLUSTERS_DATASET = "d_dbfabf16158d1b0e1c420627c0819168"


class ClusterSource(Protocol):
    def fetch_clusters(self) -> List[DengueCluster]:
        """Current cluster list; raises ClusterFetchError."""
        ...


class NeaClusterClient:
    """Dengue clusters from the NEA dataset on data.gov.sg."""

    def __init__(
        self,
        dataset_id: str = DENGUE_CLUSTERS_DATASET,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self._dataset_id = dataset_id
        self._timeout = timeout
        self._session = session

    @property
    def poll_url(self) -> str:
        return f"{_BASE_URL}/{self._dataset_id}/poll-download"

    def _get_json(self, url: str, what: str):
        try:
            resp = fetch_with_retry(url, timeout=self._timeout, session=self._session)
            return resp.json()
        except requests.RequestException as exc:
            raise ClusterFetchError(f"{what} failed: {exc}") from exc
        except ValueError as exc:
            raise ClusterFetchError(f"{what} returned invalid JSON: {exc}") from exc

    def fetch_clusters(self) -> List[DengueCluster]:
        poll = self._get_json(self.poll_url, "Dataset poll")
        if not isinstance(poll, dict):
            raise ClusterFetchError("Dataset poll returned an unexpected payload")
        if poll.get("code") != 0:
            raise ClusterFetchError(f"API error: {poll.get('errMsg') or poll.get('code')}")

        try:
            download_url = poll["data"]["url"]
        except (KeyError, TypeError) as exc:
            raise ClusterFetchError("Dataset poll response has no download URL") from exc

        geojson = self._get_json(download_url, "Dataset download")
        if not isinstance(geojson, dict) or "features" not in geojson:
            raise ClusterFetchError("Dataset is not a GeoJSON FeatureCollection")

        clusters = clusters_from_geojson(geojson)
        log.info("NEA dataset %s: %d clusters", self._dataset_id, len(clusters))
        return clusters
