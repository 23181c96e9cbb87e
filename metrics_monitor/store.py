"""SQLite-backed persistence for metric samples."""
from __future__ import annotations

import datetime as dt
import logging
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import StoreError
from .models import MetricAverage, MetricSample

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"
SQLITE_MAX_INTEGER = 2**63 - 1


def _to_epoch(value: dt.datetime) -> float:
    return value.timestamp()


def _row_to_sample(row: sqlite3.Row) -> MetricSample:
    return MetricSample(
        id=row["id"],
        cpu_percent=row["cpu_percent"],
        mem_percent=row["mem_percent"],
        created_at=dt.datetime.fromtimestamp(row["created_at"], tz=dt.timezone.utc),
    )


class MetricsStore:
    """Owns the single process-wide connection to the metrics database.

    The connection is shared between collector threads and HTTP handlers,
    so every statement runs under ``self._lock``. Inserts may arrive out of
    ``created_at`` order; every query sorts explicitly.
    """

    def __init__(self, path: str = IN_MEMORY) -> None:
        self._path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None and not self._closed

    def open(self) -> "MetricsStore":
        """Create the database file, table and index if they do not already exist."""
        if self._conn is not None:
            return self
        try:
            if self._path != IN_MEMORY:
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS metrics (
                    id TEXT PRIMARY KEY,
                    cpu_percent REAL NOT NULL,
                    mem_percent REAL NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_metrics_created_at ON metrics(created_at)"
            )
            conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"cannot open metrics database at {self._path}: {exc}") from exc
        self._conn = conn
        logger.info("Metrics database ready at %s", self._path)
        return self

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None or self._closed:
            raise StoreError("metrics database is not open")
        return self._conn

    def save(self, sample: MetricSample) -> None:
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    "INSERT INTO metrics(id, cpu_percent, mem_percent, created_at) VALUES (?, ?, ?, ?)",
                    (
                        sample.id,
                        sample.cpu_percent,
                        sample.mem_percent,
                        _to_epoch(sample.created_at),
                    ),
                )
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StoreError(f"failed to insert metric {sample.id}: {exc}") from exc

    def list_page(self, page_size: int, offset: int) -> Tuple[List[MetricSample], int]:
        """Return one page of samples, newest first, and the total row count."""
        with self._lock:
            conn = self._connection()
            try:
                total = conn.execute("SELECT COUNT(*) FROM metrics").fetchone()[0]
                if offset > SQLITE_MAX_INTEGER:
                    return [], total
                rows = conn.execute(
                    """
                    SELECT id, cpu_percent, mem_percent, created_at FROM metrics
                    ORDER BY created_at DESC, id ASC
                    LIMIT ? OFFSET ?
                    """,
                    (page_size, offset),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"failed to list metrics: {exc}") from exc
        return [_row_to_sample(row) for row in rows], total

    def list_range(self, start: dt.datetime, end: dt.datetime) -> List[MetricSample]:
        with self._lock:
            conn = self._connection()
            try:
                rows = conn.execute(
                    """
                    SELECT id, cpu_percent, mem_percent, created_at FROM metrics
                    WHERE created_at BETWEEN ? AND ?
                    ORDER BY created_at ASC, id ASC
                    """,
                    (_to_epoch(start), _to_epoch(end)),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"failed to fetch metrics by time range: {exc}") from exc
        return [_row_to_sample(row) for row in rows]

    def average(self, start: dt.datetime, end: dt.datetime) -> MetricAverage:
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(
                    """
                    SELECT COUNT(*) AS sample_count,
                           AVG(cpu_percent) AS cpu_percent,
                           AVG(mem_percent) AS mem_percent
                    FROM metrics
                    WHERE created_at BETWEEN ? AND ?
                    """,
                    (_to_epoch(start), _to_epoch(end)),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"failed to average metrics: {exc}") from exc
        return MetricAverage(
            cpu_percent=row["cpu_percent"] or 0.0,
            mem_percent=row["mem_percent"] or 0.0,
            sample_count=row["sample_count"],
        )

    def close(self, timeout: Optional[float] = None) -> None:
        """Close the connection, waiting at most *timeout* seconds for in-flight statements.

        Raises ``StoreError`` if the wait times out or the close fails. The
        store refuses further work either way. Closing twice is a no-op.
        """
        if self._conn is None or self._closed:
            return
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        self._closed = True
        if not acquired:
            raise StoreError(f"timed out after {timeout}s waiting for in-flight writes")
        try:
            self._conn.close()
        except sqlite3.Error as exc:
            raise StoreError(f"failed to close metrics database: {exc}") from exc
        finally:
            self._lock.release()
        logger.info("Metrics database closed")
