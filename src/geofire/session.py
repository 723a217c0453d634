from __future__ import annotations

from typing import Optional

from .client import HttpDocumentStore
from .geofire import GeoFire
from .store import DocumentStore

_default_geofire: Optional[GeoFire] = None


def setup(
    base_url: str = "http://127.0.0.1:3000",
    api_key: Optional[str] = None,
    collection: str = "locations",
    timeout: float = 10.0,
    poll_interval: float = 1.0,
    store: Optional[DocumentStore] = None,
) -> GeoFire:
    global _default_geofire
    _default_geofire = GeoFire(
        store
        or HttpDocumentStore(
            base_url=base_url,
            collection=collection,
            api_key=api_key,
            timeout=timeout,
            poll_interval=poll_interval,
        )
    )
    return _default_geofire


def get_geofire() -> GeoFire:
    if _default_geofire is None:
        raise RuntimeError("geofire.setup(...) must be called before querying")
    return _default_geofire
