"""
Idenguefy: dengue cluster map and proximity alert core.

Entry point: python -m idenguefy.main

Provides:
- Web-Mercator tile math and haversine distance (geo/projection)
- Dengue cluster model and NEA GeoJSON parsing (geo/cluster)
- Gzip-compressed, concurrency-safe tile disk cache (storage/tile_cache)
- Cache-or-fetch tile grid coordinator with request pacing (ingest/tile_fetcher)
- Cluster snapshot store (ingest/cluster_store)
- Proximity alerts with per-source cooldown (alerts/)
"""

__version__ = "0.1.0"
