"""Bounded worker pool for detached stale-rate refreshes."""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional, Set

from fxrates.utils.logging import get_logger

logger = get_logger(__name__)


class BackgroundRefresher:
    """Runs fire-and-forget jobs, at most one in flight per key.

    Failures are logged from the future's done-callback and never reach the
    code that submitted the job.
    """

    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="fx-refresh"
        )
        self._in_flight: Set[str] = set()
        self._futures: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, key: str, job: Callable[[], object]) -> bool:
        """Queue ``job`` unless one for ``key`` is already pending.

        Returns True when the job was queued.
        """
        with self._lock:
            if self._closed:
                logger.warning(f"Background refresher closed, dropping refresh for {key}")
                return False
            if key in self._in_flight:
                logger.debug(f"Refresh for {key} already in flight")
                return False
            self._in_flight.add(key)
            try:
                future = self._executor.submit(job)
            except RuntimeError as e:
                self._in_flight.discard(key)
                logger.warning(f"Could not queue refresh for {key}: {e}")
                return False
            self._futures[key] = future

        future.add_done_callback(lambda f, k=key: self._finished(k, f))
        logger.info(f"Background refresh queued for {key}")
        return True

    def _finished(self, key: str, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(key)
            self._futures.pop(key, None)

        if future.cancelled():
            logger.info(f"Background refresh for {key} cancelled")
            return
        error = future.exception()
        if error is not None:
            logger.error(
                f"Background refresh failed for {key}: {error}",
                extra={"pair": key, "error": str(error)},
            )
        else:
            logger.info(f"Background refresh completed for {key}")

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def pending(self, key: str) -> Optional[Future]:
        with self._lock:
            return self._futures.get(key)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
