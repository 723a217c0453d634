from __future__ import annotations

from typing import Any, Optional

from .events import EventRaiser, ThreadEventRaiser
from .models import LocationRecord, parse_location
from .query import GeoQuery
from .store import DocumentStore
from .types import GeoPoint


class GeoFire:
    """Stores locations in a :class:`DocumentStore` and queries them by radius."""

    def __init__(
        self, store: DocumentStore, raiser: Optional[EventRaiser] = None
    ) -> None:
        self.store = store
        self._owns_raiser = raiser is None
        self.raiser = raiser or ThreadEventRaiser()

    def close(self) -> None:
        if self._owns_raiser and isinstance(self.raiser, ThreadEventRaiser):
            self.raiser.close()

    def __enter__(self) -> "GeoFire":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def get_location_value(key: str, record: Any) -> GeoPoint:
        return parse_location(key, record).point

    def set_location(self, key: str, location: GeoPoint) -> None:
        if not key:
            raise ValueError("key is required")
        record = LocationRecord.from_point(location)
        self.store.set_document(key, record.model_dump(by_alias=True))

    def remove_location(self, key: str) -> None:
        if not key:
            raise ValueError("key is required")
        self.store.delete_document(key)

    def get_location(self, key: str) -> Optional[GeoPoint]:
        record = self.store.get_document(key)
        if record is None:
            return None
        return self.get_location_value(key, record)

    def query_at_location(self, center: GeoPoint, radius: float) -> GeoQuery:
        """New query around ``center``; ``radius`` in kilometers, capped at 8587."""
        return GeoQuery(self.store, center, radius, self.raiser)
