"""CLI entrypoint: start the collector and the HTTP API, then shut both down on SIGINT/SIGTERM."""
from __future__ import annotations

import logging
import sys
import threading
from typing import Callable, Optional

import uvicorn

from .api import create_app
from .collector import MetricsCollector
from .config import Settings, get_settings
from .errors import ConfigError, StoreError
from .sampler import prime_cpu_counter
from .shutdown import ShutdownCoordinator
from .sink import ErrorSink
from .store import MetricsStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


class ServerThread:
    """Runs a uvicorn server off the main thread so the main thread keeps the signal handlers."""

    def __init__(self, server: uvicorn.Server, on_exit: Callable[[], None]) -> None:
        self._server = server
        self._on_exit = on_exit
        self._thread: Optional[threading.Thread] = None
        self.failed = False

    def _serve(self) -> None:
        try:
            self._server.run()
        finally:
            if not self._server.should_exit:
                self.failed = True
                logger.error("HTTP server exited unexpectedly")
                self._on_exit()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._serve, name="http-server", daemon=True)
        self._thread.start()

    def stop(self, timeout: float) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                raise TimeoutError(f"HTTP server did not stop within {timeout}s")


def run(settings: Settings) -> int:
    store = MetricsStore(settings.database_path)
    try:
        store.open()
    except StoreError:
        logger.exception("Cannot initialise metrics database")
        return 1

    sink = ErrorSink(settings.error_sink_capacity)
    collector = MetricsCollector(store, settings.interval_seconds, sink)
    coordinator = ShutdownCoordinator(
        grace_period=settings.grace_period_seconds,
        shutdown_timeout=settings.shutdown_timeout_seconds,
    )
    server = ServerThread(
        uvicorn.Server(
            uvicorn.Config(
                create_app(store),
                host=settings.host,
                port=settings.port,
                log_level=settings.log_level,
            )
        ),
        on_exit=coordinator.cancel,
    )

    coordinator.install_signal_handlers()
    prime_cpu_counter()
    collector.start(coordinator.cancelled)
    logger.info("Starting API server on %s:%d", settings.host, settings.port)
    server.start()

    coordinator.wait()
    coordinator.shutdown(collector=collector, sink=sink, server=server, store=store)
    return 1 if server.failed else 0


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as exc:
        configure_logging("info")
        logger.error("Invalid configuration: %s", exc)
        sys.exit(2)
    configure_logging(settings.log_level)
    sys.exit(run(settings))


if __name__ == "__main__":
    main()
