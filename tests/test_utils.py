"""Tests for rounding and timestamp parsing helpers."""

import datetime as dt

import pytest

from metrics_monitor.utils import parse_timestamp, round2


@pytest.mark.parametrize("value", [0.0, 1.005, 12.3456, 33.335, 99.999, 100.0, 1e-9, 45.5])
def test_round2_is_idempotent(value):
    once = round2(value)
    assert round2(once) == once


def test_round2_keeps_two_decimals():
    assert round2(12.3456) == 12.35
    assert round2(40.166666) == 40.17


def test_parse_timestamp_accepts_zulu():
    parsed = parse_timestamp("2025-02-22T10:30:00Z")
    assert parsed == dt.datetime(2025, 2, 22, 10, 30, tzinfo=dt.timezone.utc)


def test_parse_timestamp_converts_offset_to_utc():
    parsed = parse_timestamp("2025-02-22T16:00:00+05:30")
    assert parsed == dt.datetime(2025, 2, 22, 10, 30, tzinfo=dt.timezone.utc)
    assert parsed.tzinfo == dt.timezone.utc


@pytest.mark.parametrize("raw", ["", "bad", "2025-02-22", "2025-02-22T10:30:00", "22/02/2025 10:30"])
def test_parse_timestamp_rejects_non_rfc3339(raw):
    with pytest.raises(ValueError):
        parse_timestamp(raw)


@pytest.mark.parametrize(
    "raw, microsecond",
    [
        ("2025-02-22T10:30:00.5Z", 500000),
        ("2025-02-22T10:30:00.12Z", 120000),
        ("2025-02-22T10:30:00.1234567Z", 123456),
        ("2025-02-22t10:30:00.000001z", 1),
    ],
)
def test_parse_timestamp_accepts_any_fraction_length(raw, microsecond):
    parsed = parse_timestamp(raw)
    assert parsed.replace(microsecond=0) == dt.datetime(2025, 2, 22, 10, 30, tzinfo=dt.timezone.utc)
    assert parsed.microsecond == microsecond


@pytest.mark.parametrize(
    "raw",
    [
        "0001-01-01T00:00:00+01:00",
        "9999-12-31T23:59:59-01:00",
        "2025-13-01T00:00:00Z",
        "2025-02-22T10:30:00+25:00",
        "20250222T103000Z",
        "2025-02-22T10:30Z",
        "2025-W08-6T10:30:00Z",
    ],
)
def test_parse_timestamp_rejects_out_of_range_and_non_rfc3339_forms(raw):
    with pytest.raises(ValueError):
        parse_timestamp(raw)
