"""Unit tests for timestamp formatting."""

from datetime import datetime, timedelta

import pytest

from latexsync.utils.timestamp import format_timestamp, now


@pytest.mark.unit
def test_absolute():
    assert format_timestamp("2025-11-13T18:45:40.123456") == "2025-11-13 18:45:40"


@pytest.mark.unit
@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(seconds=30), "30s ago"),
        (timedelta(minutes=15, seconds=5), "15m ago"),
        (timedelta(hours=2, minutes=1), "2h ago"),
        (timedelta(days=5, hours=1), "5d ago"),
    ],
)
def test_relative(delta, expected):
    stamp = (datetime.now() - delta).isoformat()

    assert format_timestamp(stamp, relative=True) == expected


@pytest.mark.unit
def test_future_and_unparseable():
    stamp = (datetime.now() + timedelta(hours=3, minutes=1)).isoformat()

    assert format_timestamp(stamp, relative=True) == "3h from now"
    assert format_timestamp("yesterday") == "yesterday"


@pytest.mark.unit
def test_compact_stamp_shape():
    stamp = now()

    assert len(stamp) == 15
    assert stamp[8] == "_"
