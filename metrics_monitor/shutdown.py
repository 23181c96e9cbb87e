"""Graceful shutdown helpers for the collector, HTTP server and database."""
from __future__ import annotations

import logging
import signal
import threading
from typing import Optional, Protocol

from .collector import MetricsCollector
from .sink import ErrorSink
from .store import MetricsStore

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 1.0
DEFAULT_SHUTDOWN_TIMEOUT = 2.0


class Stoppable(Protocol):
    def stop(self, timeout: float) -> None: ...


class ShutdownCoordinator:
    """Owns the cancellation signal and the teardown order.

    SIGINT/SIGTERM set ``cancelled``; ``shutdown`` then stops the collector,
    gives in-flight attempts ``grace_period`` seconds, closes the error sink,
    stops the HTTP server and closes the store, each with a bounded wait.
    A failing step is logged and the remaining steps still run.
    """

    def __init__(
        self,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ) -> None:
        self.grace_period = grace_period
        self.shutdown_timeout = shutdown_timeout
        self.cancelled = threading.Event()
        self._lock = threading.Lock()
        self._shut_down = False

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to ``cancel``. Must be called from the main thread."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum: int, _frame: object) -> None:
        if self.cancelled.is_set():
            logger.info("Received signal %s again; shutdown already in progress", signal.Signals(signum).name)
            return
        logger.info("Received termination signal %s", signal.Signals(signum).name)
        self.cancel()

    def cancel(self) -> None:
        self.cancelled.set()

    def wait(self, poll_interval: float = 0.5) -> None:
        """Block until cancelled. Polls so signal handlers get a chance to run."""
        while not self.cancelled.wait(poll_interval):
            pass

    def shutdown(
        self,
        collector: Optional[MetricsCollector] = None,
        sink: Optional[ErrorSink] = None,
        server: Optional[Stoppable] = None,
        store: Optional[MetricsStore] = None,
    ) -> bool:
        """Tear everything down once. Returns True if every step finished cleanly."""
        with self._lock:
            if self._shut_down:
                return True
            self._shut_down = True

        self.cancel()
        clean = True

        if collector is not None:
            try:
                logger.info("Stopping metrics collector...")
                collector.stop(timeout=self.shutdown_timeout)
                if not collector.wait_inflight(self.grace_period):
                    clean = False
                    logger.warning(
                        "Abandoning %d in-flight collection attempt(s) after %.1fs grace period",
                        collector.inflight_count,
                        self.grace_period,
                    )
            except Exception:
                clean = False
                logger.exception("Metrics collector shutdown failed")

        if sink is not None:
            # Attempts that finished during the grace period may still have errors queued.
            sink.drain()
            sink.close()
            if sink.dropped:
                logger.warning("Error sink dropped %d collection error(s)", sink.dropped)

        if server is not None:
            try:
                server.stop(timeout=self.shutdown_timeout)
                logger.info("Server shutdown successfully")
            except Exception:
                clean = False
                logger.exception("Server shutdown failed")

        if store is not None:
            try:
                store.close(timeout=self.shutdown_timeout)
                logger.info("Database shutdown successfully")
            except Exception:
                clean = False
                logger.exception("Database shutdown failed")

        logger.info("Shutdown complete")
        return clean
