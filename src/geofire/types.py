from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from .constants import BITS_PER_CHAR, DEFAULT_PRECISION, KM_PER_DEGREE, MAX_PRECISION
from .exceptions import InvalidCoordinateError
from .utils import coordinates_valid

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"

_BASE32_VALUES = {char: value for value, char in enumerate(BASE32)}


def _cell_degrees(precision: int) -> Tuple[float, float]:
    bits = precision * BITS_PER_CHAR
    lat_bits = bits // 2
    lon_bits = bits - lat_bits
    return 180.0 / (1 << lat_bits), 360.0 / (1 << lon_bits)


_GEOHASH_CELL_KM: List[Tuple[int, float]] = [
    (precision, min(_cell_degrees(precision)) * KM_PER_DEGREE)
    for precision in range(1, MAX_PRECISION + 1)
]


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not coordinates_valid(self.lat, self.lon):
            raise InvalidCoordinateError(
                f"GeoPoint [lat: {self.lat}, lon: {self.lon}] is invalid"
            )

    def __str__(self) -> str:
        return f"{self.lat},{self.lon}"

    @property
    def geohash(self) -> str:
        return encode_geohash(self.lat, self.lon, precision=DEFAULT_PRECISION)

    @classmethod
    def from_string(cls, value: str) -> "GeoPoint":
        parts = value.split(",", 1)
        if len(parts) != 2:
            raise ValueError("GeoPoint string must be 'lat,lon'")
        lat = float(parts[0].strip())
        lon = float(parts[1].strip())
        return cls(lat=lat, lon=lon)


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lon <= lon <= self.max_lon
        )

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            (self.min_lat + self.max_lat) / 2, (self.min_lon + self.max_lon) / 2
        )


def base32_value(char: str) -> int:
    try:
        return _BASE32_VALUES[char]
    except KeyError:
        raise ValueError(f"Not a valid base32 geohash character: {char!r}") from None


def geohash_precision_for_km(radius_km: float) -> int:
    """Longest geohash whose cells are still at least ``radius_km`` across."""
    for precision, size_km in reversed(_GEOHASH_CELL_KM):
        if size_km >= radius_km:
            return precision
    return 1


def encode_geohash(lat: float, lon: float, precision: int = DEFAULT_PRECISION) -> str:
    if not 1 <= precision <= MAX_PRECISION:
        raise ValueError(f"precision must be between 1 and {MAX_PRECISION}")
    if not coordinates_valid(lat, lon):
        raise InvalidCoordinateError(f"GeoPoint [lat: {lat}, lon: {lon}] is invalid")

    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    bits = [16, 8, 4, 2, 1]
    bit = 0
    ch = 0
    even = True
    geohash = []

    while len(geohash) < precision:
        if even:
            mid = (lon_range[0] + lon_range[1]) / 2
            if lon >= mid:
                ch |= bits[bit]
                lon_range[0] = mid
            else:
                lon_range[1] = mid
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if lat >= mid:
                ch |= bits[bit]
                lat_range[0] = mid
            else:
                lat_range[1] = mid
        even = not even
        if bit < 4:
            bit += 1
        else:
            geohash.append(BASE32[ch])
            bit = 0
            ch = 0

    return "".join(geohash)


def decode_geohash(geohash: str) -> BoundingBox:
    if not geohash:
        return BoundingBox(-90.0, -180.0, 90.0, 180.0)

    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    even = True
    for char in geohash:
        value = base32_value(char)
        for shift in range(BITS_PER_CHAR - 1, -1, -1):
            target = lon_range if even else lat_range
            mid = (target[0] + target[1]) / 2
            if (value >> shift) & 1:
                target[0] = mid
            else:
                target[1] = mid
            even = not even

    return BoundingBox(lat_range[0], lon_range[0], lat_range[1], lon_range[1])
