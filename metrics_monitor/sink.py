"""Bounded, non-blocking conduit for collection failures."""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional

from .errors import CollectionError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10


def log_collection_error(error: CollectionError) -> None:
    logger.error("Metrics collection error [%s]: %s", error.stage.value, error.cause)


class ErrorSink:
    """Many producers report, one observer drains.

    ``report`` never blocks: a full or closed sink drops the error and
    counts it in ``dropped``.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than zero")
        self._queue: "queue.Queue[CollectionError]" = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self._closed = False
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        return self._dropped

    def report(self, error: CollectionError) -> bool:
        """Queue *error* for the observer. Returns False if it was dropped."""
        if self._closed:
            self._count_drop(error, "closed")
            return False
        try:
            self._queue.put_nowait(error)
        except queue.Full:
            self._count_drop(error, "full")
            return False
        return True

    def _count_drop(self, error: CollectionError, reason: str) -> None:
        with self._lock:
            self._dropped += 1
        logger.warning("Error sink %s, dropping collection error: %s", reason, error)

    def drain(self, observer: Optional[Callable[[CollectionError], None]] = None) -> List[CollectionError]:
        """Hand every queued error to *observer* without waiting for more."""
        observer = observer or log_collection_error
        drained: List[CollectionError] = []
        while True:
            try:
                error = self._queue.get_nowait()
            except queue.Empty:
                return drained
            drained.append(error)
            try:
                observer(error)
            except Exception:
                logger.exception("Error sink observer failed")

    def close(self) -> None:
        self._closed = True

    def __len__(self) -> int:
        return self._queue.qsize()
