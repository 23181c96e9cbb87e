"""Runtime configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, TypeVar

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

T = TypeVar("T", int, float)


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"
    database_path: str = "./data/metrics.db"
    interval_seconds: float = 5.0
    grace_period_seconds: float = 1.0
    shutdown_timeout_seconds: float = 2.0
    error_sink_capacity: int = 10


def _positive(name: str, default: str, cast: Callable[[str], T]) -> T:
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be greater than zero, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Build settings from environment variables, reading ``.env`` first if present."""
    load_dotenv(find_dotenv(usecwd=True), override=False)
    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_positive("PORT", "8080", int),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        database_path=os.getenv("DATABASE_PATH", "./data/metrics.db"),
        interval_seconds=_positive("METRICS_INTERVAL_SECONDS", "5", float),
        grace_period_seconds=_positive("SHUTDOWN_GRACE_SECONDS", "1.0", float),
        shutdown_timeout_seconds=_positive("SHUTDOWN_TIMEOUT_SECONDS", "2.0", float),
        error_sink_capacity=_positive("ERROR_SINK_CAPACITY", "10", int),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return load_settings()
