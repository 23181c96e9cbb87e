"""Exception types shared across the metrics monitor."""
from __future__ import annotations

from enum import Enum


class ConfigError(ValueError):
    """Raised when an environment setting cannot be used."""


class StoreError(RuntimeError):
    """Raised when the metrics database cannot be opened, queried or closed."""


class CollectionStage(str, Enum):
    CPU_READ = "cpu-read"
    MEM_READ = "mem-read"
    PERSIST = "persist"


class CollectionError(Exception):
    """A failed sample-and-persist attempt, tagged with the stage that failed."""

    def __init__(self, stage: CollectionStage, cause: BaseException) -> None:
        super().__init__(f"{stage.value}: {cause}")
        self.stage = stage
        self.cause = cause
