import datetime as dt
import threading

import pytest

from metrics_monitor.models import MetricSample
from metrics_monitor.sink import ErrorSink
from metrics_monitor.store import MetricsStore


class FakeSampler:
    """Returns fixed readings, or raises if given an exception instead."""

    def __init__(self, cpu=12.345, mem=67.891, delay=0.0):
        self.cpu = cpu
        self.mem = mem
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def _read(self, value):
        if self.delay:
            threading.Event().wait(self.delay)
        if isinstance(value, BaseException):
            raise value
        return value

    def cpu_percent(self):
        with self._lock:
            self.calls += 1
        return self._read(self.cpu)

    def memory_percent(self):
        return self._read(self.mem)


class HangingWriter:
    """A store whose save blocks until ``release`` is set."""

    def __init__(self, fail_with=None):
        self.release = threading.Event()
        self.entered = threading.Event()
        self.fail_with = fail_with
        self.saved = []

    def save(self, sample):
        self.entered.set()
        self.release.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.saved.append(sample)


@pytest.fixture
def store(tmp_path):
    metrics_store = MetricsStore(str(tmp_path / "metrics.db")).open()
    yield metrics_store
    metrics_store.close()


@pytest.fixture
def sink():
    return ErrorSink(capacity=10)


@pytest.fixture
def now():
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0)


def make_sample(cpu, mem, created_at):
    return MetricSample.new(cpu, mem, created_at=created_at)
