"""Supervised background execution for ingestion runs.

One future per key (a document id). A key can have at most one active
task, which gives each document a single writer.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TaskSupervisor:
    def __init__(self, max_workers: int = 4, name: str = "ingest") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._active: dict[str, Future] = {}
        self._lock = threading.Lock()

    def submit(self, key: str, fn: Callable[[], None]) -> Optional[Future]:
        """Run ``fn`` in the pool. Returns None when ``key`` already has an active task."""
        with self._lock:
            existing = self._active.get(key)
            if existing is not None and not existing.done():
                return None
            future = self._executor.submit(fn)
            self._active[key] = future
        future.add_done_callback(lambda f: self._finished(key, f))
        return future

    def active(self, key: str) -> bool:
        with self._lock:
            future = self._active.get(key)
        return future is not None and not future.done()

    def wait(self, key: str, timeout: Optional[float] = None) -> bool:
        """Block until the task for ``key`` finishes. True if nothing is left running."""
        with self._lock:
            future = self._active.get(key)
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return bool(done)

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        with self._lock:
            futures = list(self._active.values())
        _, pending = wait(futures, timeout=timeout)
        return not pending

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _finished(self, key: str, future: Future) -> None:
        with self._lock:
            if self._active.get(key) is future:
                del self._active[key]
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                "Background task failed",
                exc_info=(type(error), error, error.__traceback__),
                extra={"key": key},
            )
