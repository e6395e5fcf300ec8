"""
MapTiler geocoding search.

One request per query, restricted to Singapore by default:

    https://api.maptiler.com/geocoding/{query}.json?key=API_KEY&country=sg&limit=5

The response is a GeoJSON FeatureCollection.  Each feature has a short
``text`` name, a full ``place_name``, a ``relevance`` score, a
``place_type`` list and a Point geometry (falling back to ``center``).

Usage
-----
    client = MapTilerSearchClient(api_key="...")
    for r in client.search("Bedok North"):
        print(r.name, r.lon, r.lat, r.place_type)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple
from urllib.parse import quote

import requests

from ..errors import SearchError
from . import fetch_with_retry

log = logging.getLogger(__name__)

_BASE_URL = "https://api.maptiler.com/geocoding"


@dataclass(frozen=True)
class MapSearchResult:
    """One geocoded place."""
    name: str
    detail: str
    lon: float
    lat: float
    relevance: float = 0.0
    place_type: str = ""

    @property
    def coordinates(self) -> Tuple[float, float]:
        return self.lon, self.lat


class SearchSource(Protocol):
    def search(self, query: str) -> List[MapSearchResult]:
        """Places matching *query*, best first; raises SearchError."""
        ...


def _parse_result(feat: dict) -> Optional[MapSearchResult]:
    try:
        geometry = feat.get("geometry") or {}
        coords = geometry.get("coordinates") or feat["center"]
        place_types = feat.get("place_type") or []
        name = str(feat["text"])
        return MapSearchResult(
            name=name,
            detail=str(feat.get("place_name") or name),
            lon=float(coords[0]),
            lat=float(coords[1]),
            relevance=float(feat.get("relevance", 0.0)),
            place_type=str(place_types[0]) if place_types else "",
        )
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
        log.debug("Skipping unusable search feature: %s", exc)
        return None


class MapTilerSearchClient:
    """Place search against the MapTiler Geocoding API."""

    def __init__(
        self,
        api_key: str,
        country: str = "sg",
        limit: int = 5,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            log.warning("No MapTiler API key configured; search requests will be rejected")
        self._api_key = api_key
        self._country = country
        self._limit = limit
        self._timeout = timeout
        self._session = session

    def search_url(self, query: str) -> str:
        return f"{_BASE_URL}/{quote(query, safe='')}.json"

    def search(self, query: str) -> List[MapSearchResult]:
        query = query.strip()
        if not query:
            return []

        try:
            resp = fetch_with_retry(
                self.search_url(query),
                params={"key": self._api_key, "country": self._country, "limit": self._limit},
                timeout=self._timeout,
                retries=1,
                backoff=1.0,
                session=self._session,
            )
        except requests.RequestException as exc:
            raise SearchError(f"Search for {query!r} failed: {exc}") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise SearchError(f"Search for {query!r} returned invalid JSON: {exc}") from exc

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            raise SearchError(f"Search for {query!r} did not return a FeatureCollection")

        results = [r for r in (_parse_result(f) for f in features) if r is not None]
        log.info("Search %r: %d results", query, len(results))
        return results
