"""
Geospatial helpers: great-circle distance, bounding boxes and viewport fitting.

Kept free of any map or UI dependency so it can be called on every filter
pass. Viewport maths follows the slippy-map (web mercator, 256px tiles)
convention used by the tile provider.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from ..data.base import Coordinate
from .errors import InvalidCoordinate

EARTH_RADIUS_KM = 6371.0
TILE_SIZE_PX = 256
MERCATOR_MAX_LAT = 85.05112878


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in kilometres between two coordinates."""
    if not isinstance(a, Coordinate) or not isinstance(b, Coordinate):
        raise InvalidCoordinate("distance_km expects two Coordinate values")
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.south + self.north) / 2, (self.west + self.east) / 2)


@dataclass(frozen=True)
class Viewport:
    center: Coordinate
    zoom: int


def bounds_of(coords: Iterable[Coordinate]) -> Bounds | None:
    """Smallest lat/lon box containing every coordinate, or None when empty."""
    south = west = north = east = None
    for c in coords:
        if south is None:
            south = north = c.latitude
            west = east = c.longitude
            continue
        south = min(south, c.latitude)
        north = max(north, c.latitude)
        west = min(west, c.longitude)
        east = max(east, c.longitude)
    if south is None:
        return None
    return Bounds(south=south, west=west, north=north, east=east)


def _mercator_x(lon: float) -> float:
    return (lon + 180.0) / 360.0


def _mercator_y(lat: float) -> float:
    lat = max(-MERCATOR_MAX_LAT, min(MERCATOR_MAX_LAT, lat))
    rad = math.radians(lat)
    return (1.0 - math.log(math.tan(rad) + 1.0 / math.cos(rad)) / math.pi) / 2.0


def _inverse_mercator_y(y: float) -> float:
    return math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y))))


def fit_viewport(
    bounds: Bounds,
    width_px: int,
    height_px: int,
    padding_px: int = 0,
    max_zoom: int = 19,
) -> Viewport:
    """
    Largest integer zoom (and matching centre) at which `bounds` fits inside a
    `width_px` x `height_px` canvas with `padding_px` kept free on every side.
    """
    x1, x2 = _mercator_x(bounds.west), _mercator_x(bounds.east)
    y1, y2 = _mercator_y(bounds.north), _mercator_y(bounds.south)
    center = Coordinate(_inverse_mercator_y((y1 + y2) / 2.0), (bounds.west + bounds.east) / 2.0)

    avail_w = max(1, width_px - 2 * padding_px)
    avail_h = max(1, height_px - 2 * padding_px)
    span_x = abs(x2 - x1)
    span_y = abs(y2 - y1)

    candidates = []
    if span_x > 0:
        candidates.append(math.log2(avail_w / (TILE_SIZE_PX * span_x)))
    if span_y > 0:
        candidates.append(math.log2(avail_h / (TILE_SIZE_PX * span_y)))
    if not candidates:
        # Single point: zoom all the way in
        return Viewport(center=center, zoom=max_zoom)

    zoom = int(math.floor(min(candidates)))
    return Viewport(center=center, zoom=max(0, min(max_zoom, zoom)))
