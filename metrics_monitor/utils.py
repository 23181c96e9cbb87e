"""Small helpers for rounding readings and parsing request timestamps."""
from __future__ import annotations

import datetime as dt
import re

_RFC3339 = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})[Tt ]"
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def round2(value: float) -> float:
    return round(float(value), 2)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _offset(raw: str) -> dt.timezone:
    if raw in ("Z", "z"):
        return dt.timezone.utc
    sign = -1 if raw[0] == "-" else 1
    hours, minutes = int(raw[1:3]), int(raw[4:6])
    return dt.timezone(sign * dt.timedelta(hours=hours, minutes=minutes))


def parse_timestamp(raw: str) -> dt.datetime:
    """Parse an RFC 3339 timestamp such as ``2025-02-22T00:00:00Z``.

    The UTC offset is mandatory and fractional seconds may have any number
    of digits (beyond microseconds they are truncated). The result is
    converted to UTC. Raises ``ValueError`` when the value cannot be parsed
    or falls outside the representable range.
    """
    if not raw:
        raise ValueError("timestamp is empty")
    match = _RFC3339.match(raw.strip())
    if match is None:
        raise ValueError(f"cannot parse {raw!r} as RFC3339 timestamp: expected YYYY-MM-DDTHH:MM:SS[.frac](Z|+HH:MM)")
    fraction = (match["fraction"] or "")[:6].ljust(6, "0")
    try:
        parsed = dt.datetime(
            int(match["year"]),
            int(match["month"]),
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
            int(fraction),
            tzinfo=_offset(match["offset"]),
        )
        return parsed.astimezone(dt.timezone.utc)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"cannot parse {raw!r} as RFC3339 timestamp: {exc}") from exc
