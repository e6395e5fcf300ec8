"""
Web-Mercator tile math and great-circle distance.

Slippy-map convention: at zoom ``z`` there are ``2**z`` tiles per axis,
tile (0, 0) is the north-west corner, x grows eastward and y grows
southward.  Everything here is pure and stateless.

The map view covers Singapore at zoom 15, which is the highest zoom the
MapTiler quota allows for a city-scale prefetch.

Usage
-----
    from idenguefy.geo.projection import (
        SINGAPORE_BOUNDS, find_tile_bounds, lonlat_to_tile, haversine_distance,
    )
    grid = find_tile_bounds(SINGAPORE_BOUNDS, zoom=15)
    print(grid.count, "tiles")
    x, y = lonlat_to_tile(103.85, 1.30, 15)
    km = haversine_distance(103.85, 1.30, 103.85, 1.3005)
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Tuple

TILE_SIZE = 256                # pixels per tile edge
DEFAULT_ZOOM = 15
EARTH_RADIUS_KM = 6371.0

# (lon_min, lat_min, lon_max, lat_max)
SINGAPORE_BOUNDS: Tuple[float, float, float, float] = (103.6, 1.17, 104.11667, 1.48333)


@dataclass(frozen=True)
class TileKey:
    """Address of one raster tile."""
    x: int
    y: int
    zoom: int

    def __str__(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"


@dataclass(frozen=True)
class TileBounds:
    """Inclusive rectangle of tile indices at a fixed zoom."""
    x_min: int
    x_max: int
    y_min: int
    y_max: int

    @property
    def width(self) -> int:
        return self.x_max - self.x_min + 1

    @property
    def height(self) -> int:
        return self.y_max - self.y_min + 1

    @property
    def count(self) -> int:
        return max(self.width, 0) * max(self.height, 0)

    def keys(self, zoom: int) -> Iterator[TileKey]:
        """Yield every tile in the rectangle, row by row (north → south)."""
        for y in range(self.y_min, self.y_max + 1):
            for x in range(self.x_min, self.x_max + 1):
                yield TileKey(x, y, zoom)


def normalized_x(lon: float) -> float:
    """Longitude → [0, 1] across the map (for lon in [-180, 180])."""
    return (lon + 180.0) / 360.0


def normalized_y(lat: float) -> float:
    """Latitude → [0, 1] down the map (inverse Gudermannian).

    Undefined at the poles: lat = ±90 gives a huge value or raises
    ``ValueError`` (math domain error).  Callers keep latitudes inside
    the Web-Mercator range (about ±85.05°).
    """
    lat_rad = math.radians(lat)
    return (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> Tuple[int, int]:
    """Tile (x, y) containing a point.  Truncates, never rounds."""
    n = 1 << zoom
    x = math.floor(normalized_x(lon) * n)
    y = math.floor(normalized_y(lat) * n)
    return x, y


def lonlat_to_pixel_ratio(
    lon: float,
    lat: float,
    zoom: int,
    x_min: int,
    y_min: int,
) -> Tuple[float, float]:
    """Position of a point in tile units, relative to tile (x_min, y_min).

    The y component is negated: callers anchor overlays from the top-left
    corner with y growing upward, so a point one tile below the anchor
    comes out as -1.  Multiply by TILE_SIZE for a pixel offset.
    """
    n = 1 << zoom
    x_ratio = normalized_x(lon) * n - x_min
    y_ratio = -(normalized_y(lat) * n - y_min)
    return x_ratio, y_ratio


def find_tile_bounds(
    bounds: Tuple[float, float, float, float],
    zoom: int,
) -> TileBounds:
    """Tile rectangle covering a (lon_min, lat_min, lon_max, lat_max) box.

    The south-west corner gives the smallest x and the largest y; the
    north-east corner gives the largest x and the smallest y.
    """
    lon_min, lat_min, lon_max, lat_max = bounds
    x_min, y_max = lonlat_to_tile(lon_min, lat_min, zoom)
    x_max, y_min = lonlat_to_tile(lon_max, lat_max, zoom)
    return TileBounds(x_min=x_min, x_max=x_max, y_min=y_min, y_max=y_max)


def geo_to_pixel(
    lon: float,
    lat: float,
    zoom: int,
    grid: TileBounds,
    tile_size: int = TILE_SIZE,
) -> Tuple[float, float]:
    """Pixel offset of a point from the top-left corner of *grid*."""
    x_ratio, y_ratio = lonlat_to_pixel_ratio(lon, lat, zoom, grid.x_min, grid.y_min)
    return x_ratio * tile_size, y_ratio * tile_size


def haversine_distance(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in kilometres (spherical Earth, R = 6371 km)."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    a = min(a, 1.0)  # rounding can push antipodal points just past 1
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
