"""
Dengue cluster data model.

A cluster is an NEA-reported locality with active dengue transmission.
Its outline is an ordered ring of (lon, lat) vertices and its severity
tier is derived from the case count.

Proximity checks measure against the *first* vertex of the ring
(``reference_point``), not the centroid.  That is how alerts have always
been computed, so it is kept for compatibility even though a large
cluster can then alert late on its far side.

Usage
-----
    from idenguefy.geo.cluster import clusters_from_geojson
    clusters = clusters_from_geojson(geojson_dict)
    for c in clusters:
        print(c.area_name, c.case_size, c.severity.value)
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from shapely.errors import ShapelyError
from shapely.geometry import shape

log = logging.getLogger(__name__)

LonLat = Tuple[float, float]


class Severity(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def severity_of(case_size: int) -> Severity:
    """Classify a case count: <5 Low, 5-9 Medium, ≥10 High."""
    if case_size >= 10:
        return Severity.HIGH
    if case_size >= 5:
        return Severity.MEDIUM
    return Severity.LOW


@dataclass
class DengueCluster:
    """One dengue cluster polygon."""
    location_id: str
    case_size: int
    area_name: str
    coordinates: List[LonLat] = field(default_factory=list)

    @property
    def severity(self) -> Severity:
        return severity_of(self.case_size)

    @property
    def reference_point(self) -> LonLat:
        """First vertex of the ring; raises IndexError for an empty ring."""
        return self.coordinates[0]

    @property
    def centroid(self) -> LonLat:
        """Arithmetic mean of the vertices (not area-weighted)."""
        if not self.coordinates:
            raise ValueError(f"Cluster {self.location_id} has no vertices")
        n = len(self.coordinates)
        lon = sum(p[0] for p in self.coordinates) / n
        lat = sum(p[1] for p in self.coordinates) / n
        return lon, lat


def _ring_points(ring) -> List[LonLat]:
    return [(float(c[0]), float(c[1])) for c in ring.coords]


def _parse_feature(feat: dict, location_id: str) -> Optional[DengueCluster]:
    """Parse one GeoJSON feature.  Returns None if it cannot be used."""
    try:
        props = feat["properties"]
        geom = shape(feat["geometry"])
        case_size = int(props["CASE_SIZE"])
        area_name = str(props["LOCALITY"])
    except (KeyError, TypeError, ValueError, AttributeError, ShapelyError) as exc:
        log.debug("Failed to parse cluster feature: %s", exc)
        return None

    if geom.geom_type == "Polygon":
        points = _ring_points(geom.exterior)
    elif geom.geom_type == "MultiPolygon":
        # Every ring of every part, flattened in order
        points = []
        for poly in geom.geoms:
            points.extend(_ring_points(poly.exterior))
            for hole in poly.interiors:
                points.extend(_ring_points(hole))
    else:
        log.warning("Unsupported cluster geometry type: %s", geom.geom_type)
        return None

    return DengueCluster(
        location_id=location_id,
        case_size=case_size,
        area_name=area_name,
        coordinates=points,
    )


def clusters_from_geojson(data: dict) -> List[DengueCluster]:
    """Convert a GeoJSON FeatureCollection into clusters.

    Ids are sequential ("0", "1", …) over the features that parsed.
    """
    clusters: List[DengueCluster] = []
    for feat in data.get("features", []):
        cluster = _parse_feature(feat, str(len(clusters)))
        if cluster is not None:
            clusters.append(cluster)
    log.info("Parsed %d clusters", len(clusters))
    return clusters
