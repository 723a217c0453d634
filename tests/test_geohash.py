import pytest

from geofire import (
    GeoPoint,
    InvalidCoordinateError,
    decode_geohash,
    encode_geohash,
    geohash_precision_for_km,
)
from geofire.constants import KM_PER_DEGREE, MAX_PRECISION
from geofire.types import BASE32, base32_value

POINTS = [
    (0.0, 0.0),
    (57.64911, 10.40744),
    (-33.8688, 151.2093),
    (37.7749, -122.4194),
    (90.0, 180.0),
    (-90.0, -180.0),
    (89.9999, -179.9999),
    (-0.000001, 0.000001),
    (45.0, 90.0),
]


def test_encode_matches_known_geohashes() -> None:
    assert encode_geohash(57.64911, 10.40744, precision=11) == "u4pruydqqvj"
    assert encode_geohash(42.6, -5.6, precision=5) == "ezs42"


@pytest.mark.parametrize("lat,lon", POINTS)
def test_decoded_box_contains_point_at_every_precision(lat: float, lon: float) -> None:
    for precision in range(1, MAX_PRECISION + 1):
        geohash = encode_geohash(lat, lon, precision)
        assert len(geohash) == precision
        assert set(geohash) <= set(BASE32)
        assert decode_geohash(geohash).contains(lat, lon), (geohash, precision)


def test_longer_prefix_is_a_sub_box() -> None:
    outer = decode_geohash("9q8y")
    inner = decode_geohash("9q8yyk")
    assert outer.min_lat <= inner.min_lat <= inner.max_lat <= outer.max_lat
    assert outer.min_lon <= inner.min_lon <= inner.max_lon <= outer.max_lon


def test_empty_geohash_decodes_to_the_world() -> None:
    box = decode_geohash("")
    assert (box.min_lat, box.min_lon, box.max_lat, box.max_lon) == (-90, -180, 90, 180)


def test_first_bit_splits_longitude_then_latitude() -> None:
    assert encode_geohash(10, -10, 1) < encode_geohash(10, 10, 1)
    assert encode_geohash(-45, 10, 1) < encode_geohash(45, 10, 1)


def test_string_order_follows_interleaved_bit_order() -> None:
    def as_int(geohash: str) -> int:
        value = 0
        for char in geohash:
            value = (value << 5) | base32_value(char)
        return value

    hashes = [encode_geohash(lat, lon, 8) for lat, lon in POINTS]
    for a in hashes:
        for b in hashes:
            assert (a < b) == (as_int(a) < as_int(b))


@pytest.mark.parametrize(
    "lat,lon", [(91, 0), (-90.5, 0), (0, 180.1), (0, -181), (float("nan"), 0)]
)
def test_encode_rejects_invalid_coordinates(lat: float, lon: float) -> None:
    with pytest.raises(InvalidCoordinateError):
        encode_geohash(lat, lon)


def test_encode_rejects_precision_out_of_range() -> None:
    with pytest.raises(ValueError):
        encode_geohash(0, 0, 0)
    with pytest.raises(ValueError):
        encode_geohash(0, 0, MAX_PRECISION + 1)


def test_decode_rejects_characters_outside_alphabet() -> None:
    with pytest.raises(ValueError):
        decode_geohash("abc")


@pytest.mark.parametrize("radius_km", [0.001, 0.01, 0.5, 1, 5, 40, 156, 600, 2000])
def test_precision_for_radius_is_conservative(radius_km: float) -> None:
    precision = geohash_precision_for_km(radius_km)
    box = decode_geohash(encode_geohash(0, 0, precision))
    smallest_side = min(box.max_lat - box.min_lat, box.max_lon - box.min_lon)
    assert smallest_side * KM_PER_DEGREE >= radius_km
    if precision < MAX_PRECISION:
        finer = decode_geohash(encode_geohash(0, 0, precision + 1))
        finer_side = min(finer.max_lat - finer.min_lat, finer.max_lon - finer.min_lon)
        assert finer_side * KM_PER_DEGREE < radius_km


def test_precision_for_radius_bounds() -> None:
    assert geohash_precision_for_km(9000) == 1
    assert geohash_precision_for_km(0) == MAX_PRECISION


def test_geopoint_validates_and_parses() -> None:
    point = GeoPoint.from_string(" -23.5505, -46.6333 ")
    assert point == GeoPoint(-23.5505, -46.6333)
    assert str(point) == "-23.5505,-46.6333"
    assert point.geohash == encode_geohash(-23.5505, -46.6333, 10)
    with pytest.raises(InvalidCoordinateError):
        GeoPoint(100, 0)
    with pytest.raises(ValueError):
        GeoPoint.from_string("1.0")


def test_bounding_box_center_lies_inside() -> None:
    box = decode_geohash("u4pruyd")
    center = box.center
    assert box.contains(center.lat, center.lon)
    assert encode_geohash(center.lat, center.lon, 7) == "u4pruyd"
