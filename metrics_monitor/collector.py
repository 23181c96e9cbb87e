"""Periodic sample-and-persist loop."""
from __future__ import annotations

import datetime as dt
import logging
import threading
import time
from typing import Callable, Optional, Protocol, Set

from .errors import CollectionError, CollectionStage
from .models import MetricSample
from .sampler import PsutilSampler
from .sink import ErrorSink, log_collection_error
from .utils import round2, utcnow

logger = logging.getLogger(__name__)

# Upper bound on how long a queued error waits before the loop logs it.
DEFAULT_DRAIN_INTERVAL = 0.25


class Sampler(Protocol):
    def cpu_percent(self) -> float: ...

    def memory_percent(self) -> float: ...


class SampleWriter(Protocol):
    def save(self, sample: MetricSample) -> None: ...


def collect_and_save(
    store: SampleWriter,
    sink: ErrorSink,
    sampler: Optional[Sampler] = None,
    clock: Callable[[], dt.datetime] = utcnow,
) -> Optional[MetricSample]:
    """Read CPU and memory, persist one sample and return it.

    Any failure is reported to *sink* as a ``CollectionError`` and the
    attempt returns ``None`` without writing a partial record.
    """
    sampler = sampler or PsutilSampler()

    try:
        cpu_percent = sampler.cpu_percent()
    except Exception as exc:  # pylint: disable=broad-except
        sink.report(CollectionError(CollectionStage.CPU_READ, exc))
        return None

    try:
        mem_percent = sampler.memory_percent()
    except Exception as exc:  # pylint: disable=broad-except
        sink.report(CollectionError(CollectionStage.MEM_READ, exc))
        return None

    try:
        sample = MetricSample.new(round2(cpu_percent), round2(mem_percent), created_at=clock())
        store.save(sample)
    except Exception as exc:  # pylint: disable=broad-except
        sink.report(CollectionError(CollectionStage.PERSIST, exc))
        return None

    logger.debug("Saved metrics cpu=%.2f%% mem=%.2f%%", sample.cpu_percent, sample.mem_percent)
    return sample


class MetricsCollector:
    """Fires one collection attempt per interval on its own thread.

    The first attempt starts one full interval after ``run`` begins. Attempts
    are not joined by the loop: a slow one never delays the next tick, and
    cancellation returns without waiting for them. ``wait_inflight`` lets the
    owner give stragglers a bounded grace period.
    """

    def __init__(
        self,
        store: SampleWriter,
        interval_seconds: float,
        sink: ErrorSink,
        sampler: Optional[Sampler] = None,
        observer: Callable[[CollectionError], None] = log_collection_error,
        drain_interval: float = DEFAULT_DRAIN_INTERVAL,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval must be greater than zero, got {interval_seconds}")
        self._store = store
        self._interval = float(interval_seconds)
        self._sink = sink
        self._sampler = sampler or PsutilSampler()
        self._observer = observer
        self._drain_interval = drain_interval

        self._inflight: Set[threading.Thread] = set()
        self._inflight_lock = threading.Lock()
        self._attempts_started = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def attempts_started(self) -> int:
        return self._attempts_started

    @property
    def inflight_count(self) -> int:
        with self._inflight_lock:
            return len(self._inflight)

    def run(self, stop_event: threading.Event) -> None:
        """Tick until *stop_event* is set."""
        logger.info("Metrics collector started (interval=%.1fs)", self._interval)
        started = time.monotonic()
        ticks = 0
        while True:
            next_tick = started + (ticks + 1) * self._interval
            timeout = min(max(0.0, next_tick - time.monotonic()), self._drain_interval)
            if stop_event.wait(timeout):
                break
            self._sink.drain(self._observer)
            now = time.monotonic()
            if now >= next_tick:
                self._spawn_attempt()
                # Ticks missed while the loop was descheduled are skipped, not replayed.
                ticks = max(ticks + 1, int((now - started) // self._interval))
        self._sink.drain(self._observer)
        logger.info("Metrics collector stopped after %d attempts", self._attempts_started)

    def _spawn_attempt(self) -> None:
        self._attempts_started += 1
        thread = threading.Thread(
            target=self._attempt,
            name=f"metrics-attempt-{self._attempts_started}",
            daemon=True,
        )
        with self._inflight_lock:
            self._inflight.add(thread)
        logger.debug("Collecting system metrics (attempt %d)", self._attempts_started)
        try:
            thread.start()
        except RuntimeError:
            with self._inflight_lock:
                self._inflight.discard(thread)
            logger.exception("Could not start collection attempt %d", self._attempts_started)

    def _attempt(self) -> None:
        try:
            collect_and_save(self._store, self._sink, self._sampler)
        finally:
            with self._inflight_lock:
                self._inflight.discard(threading.current_thread())

    def wait_inflight(self, timeout: float) -> bool:
        """Join running attempts for at most *timeout* seconds. True if none remain."""
        deadline = time.monotonic() + timeout
        with self._inflight_lock:
            pending = list(self._inflight)
        for thread in pending:
            thread.join(max(0.0, deadline - time.monotonic()))
        return self.inflight_count == 0

    def start(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run the loop on a background thread."""
        if self._thread is not None:
            return
        self._stop_event = stop_event or threading.Event()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name="metrics-collector",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to stop and join it. In-flight attempts are left running."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
