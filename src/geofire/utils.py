from __future__ import annotations

import math
from typing import TYPE_CHECKING

from .constants import (
    BITS_PER_CHAR,
    DEFAULT_PRECISION,
    EARTH_MEAN_RADIUS_KM,
    EPSILON,
    KM_PER_DEGREE,
    MAX_SUPPORTED_RADIUS_KM,
)

if TYPE_CHECKING:
    from .types import GeoPoint


def coordinates_valid(lat: float, lon: float) -> bool:
    return (
        math.isfinite(lat)
        and math.isfinite(lon)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lon <= 180.0
    )


def cap_radius(radius_km: float) -> float:
    """Clamp a query radius to the largest one the range geometry supports.

    Beyond roughly 8587 km a circle can reach past the antipode of its center,
    where the bounding-box approximation used to build prefix ranges no longer
    covers it.
    """
    if math.isnan(radius_km) or radius_km < 0:
        raise ValueError(f"radius must be a non-negative number, got {radius_km}")
    return min(radius_km, MAX_SUPPORTED_RADIUS_KM)


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in kilometers (haversine on a spherical Earth)."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    return EARTH_MEAN_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def wrap_longitude(lon: float) -> float:
    if -180.0 <= lon <= 180.0:
        return lon
    adjusted = lon + 180.0
    if adjusted > 0:
        return (adjusted % 360.0) - 180.0
    return 180.0 - (-adjusted % 360.0)


def distance_to_latitude_degrees(distance_km: float) -> float:
    return distance_km / KM_PER_DEGREE


def distance_to_longitude_degrees(distance_km: float, lat: float) -> float:
    km_per_degree = math.cos(math.radians(lat)) * KM_PER_DEGREE
    if km_per_degree < EPSILON:
        return 360.0 if distance_km > 0 else 0.0
    return min(360.0, distance_km / km_per_degree)


def _bits_for_span(span: float, degrees: float) -> int:
    if degrees <= 0:
        return DEFAULT_PRECISION * BITS_PER_CHAR
    return max(0, math.floor(math.log2(span / degrees)))


def bits_for_bounding_box(center: GeoPoint, radius_km: float) -> int:
    """Number of geohash bits whose cells are at least as large as the circle's
    bounding box half-extent on both axes, so that the cells under the box's
    corners, edge midpoints and center cover the whole circle.

    Capped at the precision keys are stored with; zero means the circle spans
    every longitude and only the full keyspace covers it.
    """
    lat_degrees = distance_to_latitude_degrees(radius_km)
    lat_north = min(90.0, center.lat + lat_degrees)
    lat_south = max(-90.0, center.lat - lat_degrees)
    lon_degrees = max(
        distance_to_longitude_degrees(radius_km, lat_north),
        distance_to_longitude_degrees(radius_km, lat_south),
    )

    lat_bits = _bits_for_span(180.0, lat_degrees)
    lon_bits = _bits_for_span(360.0, lon_degrees)
    # Longitude takes the extra bit when the total is odd.
    bits = min(2 * lat_bits + 1, 2 * lon_bits)
    return max(0, min(bits, DEFAULT_PRECISION * BITS_PER_CHAR))
