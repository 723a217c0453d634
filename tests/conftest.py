from typing import Any, Iterator, List, Tuple

import pytest

from geofire import (
    GeoFire,
    GeoQueryEventListener,
    InMemoryDocumentStore,
    ThreadEventRaiser,
)


class TrackingStore(InMemoryDocumentStore):
    """Keeps every range registration handed out, to check they get released."""

    def __init__(self) -> None:
        super().__init__()
        self.opened = []

    def listen_range(self, start, end, on_snapshot, on_error):
        registration = super().listen_range(start, end, on_snapshot, on_error)
        self.opened.append(registration)
        return registration

    def open_count(self) -> int:
        return sum(1 for registration in self.opened if registration.active)


class Recorder(GeoQueryEventListener):
    def __init__(self) -> None:
        self.events: List[Tuple[Any, ...]] = []

    def on_key_entered(self, key, location) -> None:
        self.events.append(("entered", key, location))

    def on_key_exited(self, key) -> None:
        self.events.append(("exited", key))

    def on_key_moved(self, key, location) -> None:
        self.events.append(("moved", key, location))

    def on_geo_query_ready(self) -> None:
        self.events.append(("ready",))

    def on_geo_query_error(self, error) -> None:
        self.events.append(("error", error))

    def take(self) -> List[Tuple[Any, ...]]:
        events, self.events = self.events, []
        return events


@pytest.fixture
def store() -> Iterator[TrackingStore]:
    store = TrackingStore()
    yield store
    store.close()


@pytest.fixture
def raiser() -> Iterator[ThreadEventRaiser]:
    raiser = ThreadEventRaiser()
    yield raiser
    raiser.close()


@pytest.fixture
def geofire(store: InMemoryDocumentStore, raiser: ThreadEventRaiser) -> GeoFire:
    return GeoFire(store, raiser)


@pytest.fixture
def settle(store: InMemoryDocumentStore, raiser: ThreadEventRaiser):
    def _settle() -> None:
        store.flush(timeout=5)
        raiser.flush(timeout=5)

    return _settle


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
