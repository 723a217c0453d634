from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    AuthenticationError,
    ConnectionError,
    GeoFireError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from .models import DocumentView, WriteDocument
from .store import (
    ChangeType,
    DocumentChange,
    DocumentStore,
    ErrorCallback,
    ListenerRegistration,
    Record,
    SnapshotCallback,
)

log = logging.getLogger(__name__)


class HttpDocumentStore(DocumentStore):
    """Document store reached over the REST collections API.

    Range listeners poll: every ``poll_interval`` seconds the range is scanned
    again and diffed against the previous scan.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3000",
        collection: str = "locations",
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        poll_interval: float = 1.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.collection = collection
        self.api_key = api_key
        self.poll_interval = poll_interval
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._listeners: List["_PollingListener"] = []
        self._listeners_lock = threading.Lock()

    def close(self) -> None:
        """Stop every polling listener, wait for it to finish, then close."""
        with self._listeners_lock:
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener.remove()
            listener.join(self._timeout + self.poll_interval)
        self._client.close()

    def __enter__(self) -> "HttpDocumentStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_document(self, key: str) -> Optional[Record]:
        try:
            response = self._request("GET", self._document_path(key))
        except NotFoundError:
            return None
        return DocumentView.model_validate(response.json()).data

    def set_document(self, key: str, record: Record) -> None:
        payload = WriteDocument(data=record).model_dump()
        self._request("PUT", self._document_path(key), json=payload)

    def delete_document(self, key: str) -> None:
        self._request("DELETE", self._document_path(key))

    def scan_range(self, start: str, end: str) -> Iterator[Tuple[str, Record]]:
        response = self._request(
            "GET",
            f"/collections/{self.collection}/documents",
            params={"start": start, "end": end},
        )
        try:
            views = [DocumentView.model_validate(item) for item in response.json()]
        except (ValueError, PydanticValidationError) as exc:
            raise ServerError(f"Malformed scan response: {exc}") from exc
        return iter([(view.key, view.data) for view in views])

    def listen_range(
        self,
        start: str,
        end: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration:
        listener = _PollingListener(self, start, end, on_snapshot, on_error)
        with self._listeners_lock:
            self._listeners = [known for known in self._listeners if known.is_alive()]
            self._listeners.append(listener)
        listener.start()
        return listener

    def _document_path(self, key: str) -> str:
        return f"/collections/{self.collection}/documents/{quote(key, safe='')}"

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.request(
                method,
                url,
                headers=self._headers(),
                json=json,
                params=params,
            )
        except httpx.RequestError as exc:
            raise ConnectionError(str(exc)) from exc

        if 200 <= response.status_code < 300:
            return response

        message = response.text or response.reason_phrase
        self._raise_for_status(response.status_code, message)
        return response

    @staticmethod
    def _raise_for_status(status_code: int, message: str) -> None:
        if status_code == 400:
            raise ValidationError(message)
        if status_code == 401:
            raise AuthenticationError(message)
        if status_code == 404:
            raise NotFoundError(message)
        if status_code >= 500:
            raise ServerError(message)
        raise GeoFireError(message)


class _PollingListener(ListenerRegistration):
    def __init__(
        self,
        store: HttpDocumentStore,
        start: str,
        end: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._store = store
        self._start = start
        self._end = end
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"geofire-poll-{start}", daemon=True
        )
        self._known: Optional[Dict[str, Record]] = None

    def start(self) -> None:
        self._thread.start()

    def remove(self) -> None:
        """Stop polling without waiting.

        A scan already in flight may still deliver once after this returns;
        ``HttpDocumentStore.close()`` waits for that.
        """
        self._stopped.set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def poll(self) -> List[DocumentChange]:
        current = dict(self._store.scan_range(self._start, self._end))
        previous = self._known
        self._known = current
        if previous is None:
            return [
                DocumentChange(ChangeType.ADDED, key, record)
                for key, record in current.items()
            ]
        return diff_snapshots(previous, current)

    def _run(self) -> None:
        first = True
        while not self._stopped.is_set():
            try:
                changes = self.poll()
            except GeoFireError as exc:
                if not self._stopped.is_set():
                    log.warning(
                        "polling [%r, %r) failed: %s", self._start, self._end, exc
                    )
                    self._on_error(exc)
                return
            if self._stopped.is_set():
                return
            if changes or first:
                self._on_snapshot(changes)
            first = False
            self._stopped.wait(self._store.poll_interval)


def diff_snapshots(
    previous: Dict[str, Record], current: Dict[str, Record]
) -> List[DocumentChange]:
    changes: List[DocumentChange] = []
    for key, record in current.items():
        if key not in previous:
            changes.append(DocumentChange(ChangeType.ADDED, key, record))
        elif previous[key] != record:
            changes.append(DocumentChange(ChangeType.MODIFIED, key, record))
    for key, record in previous.items():
        if key not in current:
            changes.append(DocumentChange(ChangeType.REMOVED, key, record))
    return changes
