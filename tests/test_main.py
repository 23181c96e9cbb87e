"""Tests for the process entrypoint wiring."""

import signal
import socket
import threading

import pytest

from metrics_monitor.config import Settings
from metrics_monitor.main import ServerThread, run


class FakeUvicorn:
    def __init__(self, exit_on_its_own=False):
        self.should_exit = False
        self.exit_on_its_own = exit_on_its_own
        self.running = threading.Event()

    def run(self):
        self.running.set()
        if self.exit_on_its_own:
            return
        while not self.should_exit:
            threading.Event().wait(0.01)


def test_run_fails_fast_when_database_cannot_open(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    assert run(Settings(database_path=str(blocker / "metrics.db"))) == 1


def test_server_thread_stops_on_request():
    exits = []
    server = ServerThread(FakeUvicorn(), on_exit=lambda: exits.append(True))
    server.start()
    server.stop(timeout=1.0)
    assert exits == []


def test_server_thread_reports_unexpected_exit():
    stopped = threading.Event()
    fake = FakeUvicorn(exit_on_its_own=True)
    server = ServerThread(fake, on_exit=stopped.set)
    server.start()
    assert stopped.wait(1.0)


def test_server_thread_stop_times_out_when_server_hangs():
    class Stuck(FakeUvicorn):
        def run(self):
            threading.Event().wait(0.5)

    server = ServerThread(Stuck(), on_exit=lambda: None)
    server.start()
    with pytest.raises(TimeoutError):
        server.stop(timeout=0.05)


def test_server_thread_marks_unexpected_exit_as_failed():
    fake = FakeUvicorn(exit_on_its_own=True)
    done = threading.Event()
    server = ServerThread(fake, on_exit=done.set)
    server.start()
    assert done.wait(1.0)
    assert server.failed


def test_run_exits_non_zero_when_port_is_taken(tmp_path):
    holder = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    holder.bind(("127.0.0.1", 0))
    holder.listen(1)
    port = holder.getsockname()[1]
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    settings = Settings(
        host="127.0.0.1",
        port=port,
        log_level="warning",
        database_path=str(tmp_path / "metrics.db"),
        interval_seconds=60.0,
        grace_period_seconds=0.2,
        shutdown_timeout_seconds=0.5,
    )
    try:
        assert run(settings) == 1
    finally:
        holder.close()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
