from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)


class EventRaiser(Protocol):
    def raise_event(self, callback: Callable[[], None]) -> None: ...


class ThreadEventRaiser:
    """Runs listener callbacks one at a time, in submission order, on a
    dedicated worker thread, so callers are never notified from inside the
    call that triggered the event."""

    def __init__(self, executor: Optional[ThreadPoolExecutor] = None) -> None:
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="geofire-events"
        )

    def raise_event(self, callback: Callable[[], None]) -> None:
        self._executor.submit(self._run, callback)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every event raised so far has been delivered."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            log.exception("geo query listener raised")
