"""GeoFire: realtime radius queries over a prefix-scannable document store."""

from .client import HttpDocumentStore
from .events import EventRaiser, ThreadEventRaiser
from .exceptions import (
    AuthenticationError,
    ConnectionError,
    GeoFireError,
    InvalidCoordinateError,
    MalformedRecordError,
    NotFoundError,
    ServerError,
    StoreUnavailableError,
    ValidationError,
)
from .geofire import GeoFire
from .query import CallbackListener, GeoQuery, GeoQueryEventListener
from .ranges import QueryRange, merge_ranges, queries_at_location
from .session import get_geofire, setup
from .store import ChangeType, DocumentChange, DocumentStore, InMemoryDocumentStore
from .types import (
    BoundingBox,
    GeoPoint,
    decode_geohash,
    encode_geohash,
    geohash_precision_for_km,
)
from .utils import cap_radius, coordinates_valid, distance

__all__ = [
    "AuthenticationError",
    "BoundingBox",
    "CallbackListener",
    "ChangeType",
    "ConnectionError",
    "DocumentChange",
    "DocumentStore",
    "EventRaiser",
    "GeoFire",
    "GeoFireError",
    "GeoPoint",
    "GeoQuery",
    "GeoQueryEventListener",
    "HttpDocumentStore",
    "InMemoryDocumentStore",
    "InvalidCoordinateError",
    "MalformedRecordError",
    "NotFoundError",
    "QueryRange",
    "ServerError",
    "StoreUnavailableError",
    "ThreadEventRaiser",
    "ValidationError",
    "cap_radius",
    "coordinates_valid",
    "decode_geohash",
    "distance",
    "encode_geohash",
    "geohash_precision_for_km",
    "get_geofire",
    "merge_ranges",
    "queries_at_location",
    "setup",
]
