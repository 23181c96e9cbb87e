"""Records persisted and served by the metrics monitor."""
from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .utils import round2, utcnow


@dataclass(frozen=True)
class MetricSample:
    """One CPU and memory reading, immutable once created."""

    id: str
    cpu_percent: float
    mem_percent: float
    created_at: dt.datetime

    @classmethod
    def new(
        cls,
        cpu_percent: float,
        mem_percent: float,
        created_at: Optional[dt.datetime] = None,
    ) -> "MetricSample":
        return cls(
            id=str(uuid.uuid4()),
            cpu_percent=cpu_percent,
            mem_percent=mem_percent,
            created_at=created_at or utcnow(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "cpu_percent": self.cpu_percent,
            "mem_percent": self.mem_percent,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class MetricAverage:
    """Mean readings over a window. ``sample_count`` is zero when the window is empty."""

    cpu_percent: float
    mem_percent: float
    sample_count: int

    @property
    def is_empty(self) -> bool:
        return self.sample_count == 0

    def to_dict(self) -> Dict[str, float]:
        return {
            "cpu_percent": round2(self.cpu_percent),
            "mem_percent": round2(self.mem_percent),
        }
