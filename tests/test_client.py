import json
import os
import threading
from typing import Dict
from urllib.parse import unquote

import httpx
import pytest

from geofire import (
    AuthenticationError,
    ChangeType,
    ConnectionError,
    GeoFire,
    GeoFireError,
    GeoPoint,
    HttpDocumentStore,
    NotFoundError,
    ServerError,
    StoreUnavailableError,
    ValidationError,
)
from geofire.client import diff_snapshots
from geofire.store import DocumentChange


class FakeServer:
    """Collections API over a dict, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.documents: Dict[str, dict] = {}
        self.requests = []
        self.fail_with = None
        self.lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self.lock:
            self.requests.append(request)
            if self.fail_with is not None:
                return httpx.Response(self.fail_with, text="boom")
            path = request.url.raw_path.decode().split("?", 1)[0]
            parts = path.strip("/").split("/")
            if len(parts) == 3:
                return self._scan(request)
            key = unquote(parts[3])
            if request.method == "GET":
                if key not in self.documents:
                    return httpx.Response(404, text="not found")
                return httpx.Response(
                    200, json={"key": key, "data": self.documents[key]}
                )
            if request.method == "PUT":
                self.documents[key] = json.loads(request.content)["data"]
                return httpx.Response(204)
            if request.method == "DELETE":
                self.documents.pop(key, None)
                return httpx.Response(204)
            return httpx.Response(405)

    def _scan(self, request: httpx.Request) -> httpx.Response:
        start = request.url.params["start"]
        end = request.url.params["end"]
        rows = [
            {"key": key, "data": data}
            for key, data in sorted(self.documents.items(), key=lambda kv: kv[1]["g"])
            if start <= data["g"] < end
        ]
        return httpx.Response(200, json=rows)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def http_store(server: FakeServer):
    client = httpx.Client(transport=httpx.MockTransport(server))
    store = HttpDocumentStore(
        base_url="http://store.test/",
        collection="drivers",
        api_key="secret",
        poll_interval=0.01,
        client=client,
    )
    yield store
    store.close()


def test_document_round_trip(http_store, server) -> None:
    geofire = GeoFire(http_store)
    try:
        geofire.set_location("driver/1", GeoPoint(10, 20))
        assert server.documents["driver/1"]["l"] == [10, 20]
        assert geofire.get_location("driver/1") == GeoPoint(10, 20)
        geofire.remove_location("driver/1")
        assert geofire.get_location("driver/1") is None
    finally:
        geofire.close()

    put = next(request for request in server.requests if request.method == "PUT")
    assert put.url.raw_path.decode() == "/collections/drivers/documents/driver%2F1"
    assert put.headers["x-api-key"] == "secret"


def test_scan_range_filters_by_geohash(http_store, server) -> None:
    server.documents = {
        "a": {"g": "9q8yy00000", "l": [37.77, -122.41]},
        "b": {"g": "9q8yz00000", "l": [37.78, -122.40]},
        "c": {"g": "u4pruydqqv", "l": [57.64, 10.40]},
    }
    assert [key for key, _ in http_store.scan_range("9q8yy", "9q8z")] == ["a", "b"]
    request = server.requests[-1]
    assert request.url.params["start"] == "9q8yy"
    assert request.url.params["end"] == "9q8z"


@pytest.mark.parametrize(
    "status,error",
    [
        (400, ValidationError),
        (401, AuthenticationError),
        (404, NotFoundError),
        (500, ServerError),
        (503, ServerError),
        (418, GeoFireError),
    ],
)
def test_status_codes_map_to_errors(http_store, server, status, error) -> None:
    server.fail_with = status
    with pytest.raises(error):
        http_store.delete_document("a")


def test_server_errors_mean_store_unavailable(http_store, server) -> None:
    server.fail_with = 502
    with pytest.raises(StoreUnavailableError):
        list(http_store.scan_range("0", "~"))


def test_transport_failure_raises_connection_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(refuse))
    store = HttpDocumentStore(client=client)
    with pytest.raises(ConnectionError) as excinfo:
        store.get_document("a")
    assert isinstance(excinfo.value, StoreUnavailableError)


def test_diff_snapshots() -> None:
    previous = {"a": {"g": "1"}, "b": {"g": "2"}, "c": {"g": "3"}}
    current = {"a": {"g": "1"}, "b": {"g": "4"}, "d": {"g": "5"}}
    assert diff_snapshots(previous, current) == [
        DocumentChange(ChangeType.MODIFIED, "b", {"g": "4"}),
        DocumentChange(ChangeType.ADDED, "d", {"g": "5"}),
        DocumentChange(ChangeType.REMOVED, "c", {"g": "3"}),
    ]


def test_polling_listener_reports_initial_and_later_changes(http_store, server) -> None:
    server.documents = {"a": {"g": "9q8yy00000", "l": [37.77, -122.41]}}
    batches = []
    got_initial = threading.Event()
    got_update = threading.Event()

    def on_snapshot(changes) -> None:
        batches.append(changes)
        (got_update if got_initial.is_set() else got_initial).set()

    registration = http_store.listen_range("9q8yy", "9q8z", on_snapshot, pytest.fail)
    try:
        assert got_initial.wait(5)
        with server.lock:
            server.documents["b"] = {"g": "9q8yz00000", "l": [37.78, -122.40]}
        assert got_update.wait(5)
    finally:
        registration.remove()

    assert batches[0] == [
        DocumentChange(ChangeType.ADDED, "a", server.documents["a"])
    ]
    assert batches[1] == [
        DocumentChange(ChangeType.ADDED, "b", server.documents["b"])
    ]


def test_close_waits_for_polling_listeners(server) -> None:
    server.documents = {"a": {"g": "9q8yy00000", "l": [37.77, -122.41]}}
    store = HttpDocumentStore(
        client=httpx.Client(transport=httpx.MockTransport(server)),
        poll_interval=0.01,
    )
    delivered = threading.Event()
    registration = store.listen_range(
        "9q8yy", "9q8z", lambda changes: delivered.set(), pytest.fail
    )
    assert delivered.wait(5)

    store.close()
    assert not registration.is_alive()


def test_polling_listener_reports_failure_once(http_store, server) -> None:
    server.fail_with = 503
    errors = []
    failed = threading.Event()

    def on_error(error) -> None:
        errors.append(error)
        failed.set()

    http_store.listen_range("0", "~", lambda changes: None, on_error)
    assert failed.wait(5)
    assert len(errors) == 1
    assert isinstance(errors[0], ServerError)


def test_query_over_http_store(http_store, server) -> None:
    server.documents = {
        "near": {"g": GeoPoint(0, 0.005).geohash, "l": [0, 0.005]},
        "far": {"g": GeoPoint(0, 0.5).geohash, "l": [0, 0.5]},
    }
    ready = threading.Event()
    entered = []
    with GeoFire(http_store) as geofire:
        query = geofire.query_at_location(GeoPoint(0, 0), 1)
        query.listen(on_entered=lambda key, _: entered.append(key), on_ready=ready.set)
        try:
            assert ready.wait(5)
            assert entered == ["near"]
        finally:
            query.stop()


@pytest.mark.integration
@pytest.mark.skipif(
    "GEOFIRE_BASE_URL" not in os.environ, reason="GEOFIRE_BASE_URL is not set"
)
def test_live_store_round_trip() -> None:
    store = HttpDocumentStore(
        base_url=os.environ["GEOFIRE_BASE_URL"],
        api_key=os.environ.get("GEOFIRE_API_KEY"),
        collection=os.environ.get("GEOFIRE_COLLECTION", "geofire_it"),
    )
    with store, GeoFire(store) as geofire:
        geofire.set_location("it:1", GeoPoint(-23.5505, -46.6333))
        try:
            assert geofire.get_location("it:1") == GeoPoint(-23.5505, -46.6333)
        finally:
            geofire.remove_location("it:1")
