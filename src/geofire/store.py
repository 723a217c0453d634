from __future__ import annotations

import abc
import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

log = logging.getLogger(__name__)

Record = Dict[str, Any]
GEOHASH_FIELD = "g"


class ChangeType(str, enum.Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class DocumentChange:
    type: ChangeType
    key: str
    record: Optional[Record] = None


SnapshotCallback = Callable[[List[DocumentChange]], None]
ErrorCallback = Callable[[Exception], None]


class ListenerRegistration(abc.ABC):
    @abc.abstractmethod
    def remove(self) -> None:
        """Stop delivering changes to this listener."""


class DocumentStore(abc.ABC):
    """Collection of documents keyed by id, scannable by the ``g`` field.

    ``listen_range`` delivers the documents currently in ``[start, end)`` as
    one batch of ADDED changes, then every later change to that range, until
    the returned registration is removed. A document whose geohash leaves the
    range is delivered as REMOVED carrying its previous record.
    """

    @abc.abstractmethod
    def get_document(self, key: str) -> Optional[Record]: ...

    @abc.abstractmethod
    def set_document(self, key: str, record: Record) -> None: ...

    @abc.abstractmethod
    def delete_document(self, key: str) -> None: ...

    @abc.abstractmethod
    def scan_range(self, start: str, end: str) -> Iterator[Tuple[str, Record]]: ...

    @abc.abstractmethod
    def listen_range(
        self,
        start: str,
        end: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration: ...


def in_range(record: Optional[Record], start: str, end: str) -> bool:
    if not isinstance(record, dict):
        return False
    geohash = record.get(GEOHASH_FIELD)
    return isinstance(geohash, str) and start <= geohash < end


class _MemoryRegistration(ListenerRegistration):
    def __init__(
        self,
        store: "InMemoryDocumentStore",
        start: str,
        end: str,
        on_snapshot: SnapshotCallback,
    ) -> None:
        self.start = start
        self.end = end
        self.on_snapshot = on_snapshot
        self.active = True
        self._store = store

    def remove(self) -> None:
        self._store._unregister(self)

    def deliver(self, changes: List[DocumentChange]) -> None:
        # Checked again on the delivery thread: remove() may have run since.
        if self.active and changes:
            self.on_snapshot(changes)


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe store kept in a dict. Listener callbacks run on a single
    worker thread, in the order the changes were made."""

    def __init__(self, executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._documents: Dict[str, Record] = {}
        self._registrations: List[_MemoryRegistration] = []
        self._lock = threading.RLock()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="geofire-store"
        )

    def get_document(self, key: str) -> Optional[Record]:
        with self._lock:
            record = self._documents.get(key)
            return dict(record) if record is not None else None

    def set_document(self, key: str, record: Record) -> None:
        with self._lock:
            previous = self._documents.get(key)
            self._documents[key] = dict(record)
            self._notify(key, previous, dict(record))

    def delete_document(self, key: str) -> None:
        with self._lock:
            previous = self._documents.pop(key, None)
            if previous is not None:
                self._notify(key, previous, None)

    def scan_range(self, start: str, end: str) -> Iterator[Tuple[str, Record]]:
        with self._lock:
            rows = [
                (key, dict(record))
                for key, record in self._documents.items()
                if in_range(record, start, end)
            ]
        rows.sort(key=lambda row: row[1][GEOHASH_FIELD])
        return iter(rows)

    def listen_range(
        self,
        start: str,
        end: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration:
        registration = _MemoryRegistration(self, start, end, on_snapshot)
        with self._lock:
            initial = [
                DocumentChange(ChangeType.ADDED, key, record)
                for key, record in self.scan_range(start, end)
            ]
            self._registrations.append(registration)
            log.debug(
                "listening on [%r, %r) with %d documents", start, end, len(initial)
            )
            # Always deliver the initial snapshot, even when empty.
            self._executor.submit(self._deliver_initial, registration, initial)
        return registration

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every change made so far has reached its listeners."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        with self._lock:
            for registration in self._registrations:
                registration.active = False
            self._registrations.clear()
        self._executor.shutdown(wait=True)

    def _unregister(self, registration: _MemoryRegistration) -> None:
        with self._lock:
            registration.active = False
            if registration in self._registrations:
                self._registrations.remove(registration)

    @staticmethod
    def _deliver_initial(
        registration: _MemoryRegistration, changes: List[DocumentChange]
    ) -> None:
        if registration.active:
            registration.on_snapshot(changes)

    def _notify(
        self, key: str, previous: Optional[Record], current: Optional[Record]
    ) -> None:
        pending = []
        for registration in self._registrations:
            was_in = in_range(previous, registration.start, registration.end)
            is_in = in_range(current, registration.start, registration.end)
            if is_in and not was_in:
                change = DocumentChange(ChangeType.ADDED, key, current)
            elif is_in:
                change = DocumentChange(ChangeType.MODIFIED, key, current)
            elif was_in:
                change = DocumentChange(ChangeType.REMOVED, key, previous)
            else:
                continue
            pending.append((registration, change))
        # A document moving between two listened ranges arrives before it leaves.
        pending.sort(key=lambda item: item[1].type is ChangeType.REMOVED)
        for registration, change in pending:
            self._executor.submit(registration.deliver, [change])
