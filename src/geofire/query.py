from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Set, Tuple

from .events import EventRaiser
from .exceptions import GeoFireError, InvalidCoordinateError, StoreUnavailableError
from .models import parse_location
from .ranges import QueryRange, queries_at_location
from .store import ChangeType, DocumentChange, DocumentStore, ListenerRegistration
from .types import GeoPoint
from .utils import cap_radius, distance

log = logging.getLogger(__name__)


class GeoQueryEventListener:
    """Receives membership changes of a :class:`GeoQuery`. Override what you need."""

    def on_key_entered(self, key: str, location: GeoPoint) -> None:
        pass

    def on_key_exited(self, key: str) -> None:
        pass

    def on_key_moved(self, key: str, location: GeoPoint) -> None:
        pass

    def on_geo_query_ready(self) -> None:
        pass

    def on_geo_query_error(self, error: GeoFireError) -> None:
        pass


@dataclass(eq=False)
class CallbackListener(GeoQueryEventListener):
    entered: Optional[Callable[[str, GeoPoint], None]] = None
    exited: Optional[Callable[[str], None]] = None
    moved: Optional[Callable[[str, GeoPoint], None]] = None
    ready: Optional[Callable[[], None]] = None
    error: Optional[Callable[[GeoFireError], None]] = None

    def on_key_entered(self, key: str, location: GeoPoint) -> None:
        if self.entered:
            self.entered(key, location)

    def on_key_exited(self, key: str) -> None:
        if self.exited:
            self.exited(key)

    def on_key_moved(self, key: str, location: GeoPoint) -> None:
        if self.moved:
            self.moved(key, location)

    def on_geo_query_ready(self) -> None:
        if self.ready:
            self.ready()

    def on_geo_query_error(self, error: GeoFireError) -> None:
        if self.error:
            self.error(error)


@dataclass
class _LocationInfo:
    location: GeoPoint
    geohash: str
    in_query: bool


class GeoQuery:
    """Live set of keys within ``radius`` kilometers of ``center``.

    Every mutation of the membership map happens under one lock, in the order
    the store delivers changes. Listeners are notified through the event
    raiser, never from inside the call that caused the change.
    """

    def __init__(
        self,
        store: DocumentStore,
        center: GeoPoint,
        radius: float,
        raiser: EventRaiser,
    ) -> None:
        self._store = store
        self._raiser = raiser
        self._center = center
        self._radius = cap_radius(radius)
        self._lock = threading.RLock()
        self._listeners: List[GeoQueryEventListener] = []
        self._locations: Dict[str, _LocationInfo] = {}
        self._ranges: List[QueryRange] = []
        self._registrations: Dict[QueryRange, Tuple[int, ListenerRegistration]] = {}
        self._outstanding: Set[QueryRange] = set()
        self._generation = 0
        self._active = False
        self._ready = False

    def __enter__(self) -> "GeoQuery":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def center(self) -> GeoPoint:
        return self._center

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def ranges(self) -> List[QueryRange]:
        with self._lock:
            return list(self._ranges)

    @property
    def is_ready(self) -> bool:
        return self._ready

    def members(self) -> Dict[str, GeoPoint]:
        with self._lock:
            return {
                key: info.location
                for key, info in self._locations.items()
                if info.in_query
            }

    def set_center(self, center: GeoPoint) -> None:
        self.set_location(center, self._radius)

    def set_radius(self, radius: float) -> None:
        self.set_location(self._center, radius)

    def set_location(self, center: GeoPoint, radius: float) -> None:
        radius = cap_radius(radius)
        with self._lock:
            self._center = center
            self._radius = radius
            if self._active:
                self._setup_ranges()

    def add_listener(self, listener: GeoQueryEventListener) -> GeoQueryEventListener:
        with self._lock:
            if listener in self._listeners:
                raise ValueError("Added the same listener twice to a geo query")
            self._listeners.append(listener)
            if not self._active:
                self._active = True
                self._setup_ranges()
                return listener

            for key, info in self._locations.items():
                if info.in_query:
                    self._raise(listener.on_key_entered, key, info.location)
            if self._ready:
                self._raise(listener.on_geo_query_ready)
        return listener

    def listen(
        self,
        on_entered: Optional[Callable[[str, GeoPoint], None]] = None,
        on_exited: Optional[Callable[[str], None]] = None,
        on_moved: Optional[Callable[[str, GeoPoint], None]] = None,
        on_ready: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[GeoFireError], None]] = None,
    ) -> GeoQueryEventListener:
        return self.add_listener(
            CallbackListener(on_entered, on_exited, on_moved, on_ready, on_error)
        )

    def remove_listener(self, listener: GeoQueryEventListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                raise ValueError("Listener was never added or already removed")
            self._listeners.remove(listener)
            if not self._listeners:
                self._reset()

    def stop(self) -> None:
        with self._lock:
            self._listeners.clear()
            self._reset()

    def _reset(self) -> None:
        for _, registration in self._registrations.values():
            registration.remove()
        log.debug(
            "stopped geo query at %s, %d ranges released",
            self._center,
            len(self._registrations),
        )
        self._registrations.clear()
        self._outstanding.clear()
        self._locations.clear()
        self._ranges = []
        self._active = False
        self._ready = False

    def _setup_ranges(self) -> None:
        ranges = queries_at_location(self._center, self._radius)
        wanted = set(ranges)

        for stale in [r for r in self._registrations if r not in wanted]:
            _, registration = self._registrations.pop(stale)
            registration.remove()
            self._outstanding.discard(stale)
            log.debug("released range %s", stale)
        self._ranges = ranges

        for key, info in list(self._locations.items()):
            if not self._covers(info.geohash):
                del self._locations[key]
                if info.in_query:
                    self._raise_all("on_key_exited", key)
                continue
            in_query = self._within(info.location)
            if in_query and not info.in_query:
                info.in_query = True
                self._raise_all("on_key_entered", key, info.location)
            elif info.in_query and not in_query:
                info.in_query = False
                self._raise_all("on_key_exited", key)

        self._ready = False
        for query_range in ranges:
            if query_range in self._registrations:
                continue
            self._generation += 1
            generation = self._generation
            self._outstanding.add(query_range)
            registration = self._store.listen_range(
                query_range.start,
                query_range.end,
                on_snapshot=partial(self._on_snapshot, query_range, generation),
                on_error=partial(self._on_range_error, query_range, generation),
            )
            self._registrations[query_range] = (generation, registration)
            log.debug("listening on range %s", query_range)
        self._check_ready()

    def _is_current(self, query_range: QueryRange, generation: int) -> bool:
        entry = self._registrations.get(query_range)
        return entry is not None and entry[0] == generation

    def _on_snapshot(
        self, query_range: QueryRange, generation: int, changes: List[DocumentChange]
    ) -> None:
        with self._lock:
            if not self._is_current(query_range, generation):
                return
            for change in changes:
                self._apply(query_range, change)
            if query_range in self._outstanding:
                self._outstanding.discard(query_range)
                self._check_ready()

    def _on_range_error(
        self, query_range: QueryRange, generation: int, error: Exception
    ) -> None:
        with self._lock:
            if not self._is_current(query_range, generation):
                return
            _, registration = self._registrations.pop(query_range)
            registration.remove()
            self._outstanding.discard(query_range)
            if not isinstance(error, GeoFireError):
                wrapped = StoreUnavailableError(f"Range {query_range} failed: {error}")
                wrapped.__cause__ = error
                error = wrapped
            log.warning("range %s failed: %s", query_range, error)
            self._raise_all("on_geo_query_error", error)
            self._check_ready()

    def _apply(self, query_range: QueryRange, change: DocumentChange) -> None:
        if change.type is ChangeType.REMOVED:
            self._remove(change.key, query_range)
            return

        try:
            record = parse_location(change.key, change.record)
        except InvalidCoordinateError as exc:
            log.warning("ignoring document %s: %s", change.key, exc)
            self._raise_all("on_geo_query_error", exc)
            self._remove(change.key, None)
            return
        self._update(change.key, record.point, record.geohash)

    def _update(self, key: str, location: GeoPoint, geohash: str) -> None:
        previous = self._locations.get(key)
        if not self._covers(geohash):
            if previous is not None:
                self._remove(key, None)
            return

        in_query = self._within(location)
        self._locations[key] = _LocationInfo(location, geohash, in_query)
        if in_query and (previous is None or not previous.in_query):
            self._raise_all("on_key_entered", key, location)
        elif in_query and previous.location != location:
            self._raise_all("on_key_moved", key, location)
        elif not in_query and previous is not None and previous.in_query:
            self._raise_all("on_key_exited", key)

    def _remove(self, key: str, query_range: Optional[QueryRange]) -> None:
        info = self._locations.get(key)
        if info is None:
            return
        if query_range is not None:
            # Already seen arriving in another range of this query.
            if not query_range.contains(info.geohash):
                return
            if self._still_covered(key):
                return
        del self._locations[key]
        if info.in_query:
            self._raise_all("on_key_exited", key)

    def _still_covered(self, key: str) -> bool:
        """Whether the document now sits in a range of this query.

        Ranges deliver independently, so a key leaving one range may not have
        arrived in its new one yet. That range's own change reports the move.
        """
        try:
            record = self._store.get_document(key)
            if record is None:
                return False
            return self._covers(parse_location(key, record).geohash)
        except GeoFireError as exc:
            log.debug("could not re-read %s after removal: %s", key, exc)
            return False

    def _covers(self, geohash: str) -> bool:
        return any(query_range.contains(geohash) for query_range in self._ranges)

    def _within(self, location: GeoPoint) -> bool:
        return distance(location, self._center) <= self._radius

    def _check_ready(self) -> None:
        if self._active and not self._outstanding and not self._ready:
            self._ready = True
            log.debug("geo query at %s ready", self._center)
            self._raise_all("on_geo_query_ready")

    def _raise_all(self, method: str, *args) -> None:
        for listener in list(self._listeners):
            self._raise(getattr(listener, method), *args)

    def _raise(self, callback: Callable, *args) -> None:
        self._raiser.raise_event(lambda: callback(*args))
