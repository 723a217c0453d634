from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List

from .constants import BITS_PER_CHAR
from .types import BASE32, GeoPoint, base32_value, encode_geohash
from .utils import (
    bits_for_bounding_box,
    distance_to_latitude_degrees,
    distance_to_longitude_degrees,
    wrap_longitude,
)

# Sorts after every base32 character.
SENTINEL = "~"


@dataclass(frozen=True, order=True)
class QueryRange:
    """Half-open lexicographic interval ``[start, end)`` of geohash strings."""

    start: str
    end: str

    def contains(self, geohash: str) -> bool:
        return self.start <= geohash < self.end

    def overlaps_or_touches(self, other: "QueryRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def union(self, other: "QueryRange") -> "QueryRange":
        return QueryRange(min(self.start, other.start), max(self.end, other.end))


FULL_RANGE = QueryRange("", SENTINEL)


def successor(prefix: str) -> str:
    """Smallest string greater than every string starting with ``prefix``."""
    stripped = prefix.rstrip(BASE32[-1])
    if not stripped:
        return SENTINEL
    return stripped[:-1] + BASE32[base32_value(stripped[-1]) + 1]


def query_for_geohash(geohash: str, bits: int) -> QueryRange:
    if bits <= 0:
        return FULL_RANGE
    precision = math.ceil(bits / BITS_PER_CHAR)
    if len(geohash) < precision:
        return QueryRange(geohash, successor(geohash))

    geohash = geohash[:precision]
    base = geohash[:-1]
    last_value = base32_value(geohash[-1])
    significant_bits = bits - len(base) * BITS_PER_CHAR
    unused_bits = BITS_PER_CHAR - significant_bits
    start_value = (last_value >> unused_bits) << unused_bits
    end_value = start_value + (1 << unused_bits)

    start = base + BASE32[start_value]
    if end_value < len(BASE32):
        end = base + BASE32[end_value]
    else:
        end = successor(base)
    return QueryRange(start, end)


def merge_ranges(ranges: Iterable[QueryRange]) -> List[QueryRange]:
    merged: List[QueryRange] = []
    for current in sorted(set(ranges)):
        if merged and merged[-1].overlaps_or_touches(current):
            merged[-1] = merged[-1].union(current)
        else:
            merged.append(current)
    return merged


def queries_at_location(center: GeoPoint, radius_km: float) -> List[QueryRange]:
    """Sorted, non-overlapping prefix ranges covering the circle around ``center``.

    The ranges over-cover: callers still have to check the true distance of
    every key found inside them.
    """
    bits = bits_for_bounding_box(center, radius_km)
    if bits == 0:
        return [FULL_RANGE]
    precision = math.ceil(bits / BITS_PER_CHAR)

    lat_degrees = distance_to_latitude_degrees(radius_km)
    lat_north = min(90.0, center.lat + lat_degrees)
    lat_south = max(-90.0, center.lat - lat_degrees)
    lon_delta = max(
        distance_to_longitude_degrees(radius_km, lat_north),
        distance_to_longitude_degrees(radius_km, lat_south),
    )
    lon_west = wrap_longitude(center.lon - lon_delta)
    lon_east = wrap_longitude(center.lon + lon_delta)

    ranges = [
        query_for_geohash(encode_geohash(lat, lon, precision), bits)
        for lat in (lat_south, center.lat, lat_north)
        for lon in (lon_west, center.lon, lon_east)
    ]
    return merge_ranges(ranges)
