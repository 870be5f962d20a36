"""Tests for display formatting helpers."""

from datetime import datetime, timedelta

import pytest

from portwatch.utils import badge_title, format_memory, format_ports, format_uptime, pluralize

NOW = datetime(2026, 10, 19, 12, 0)


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(seconds=30), "<1m"),
        (timedelta(minutes=5), "5m"),
        (timedelta(hours=2), "2h"),
        (timedelta(days=1), "1d"),
        (timedelta(days=2, hours=3), "2d 3h"),
        (timedelta(seconds=-30), "<1m"),
    ],
)
def test_format_uptime(elapsed, expected):
    assert format_uptime(NOW - elapsed, now=NOW) == expected


def test_format_uptime_unknown():
    assert format_uptime(None) == "Unknown"


def test_badge_title():
    """The count is shown only when there is something to count."""
    assert badge_title(3, "⚓") == "⚓ 3"
    assert badge_title(0, "🚀") == "🚀"


def test_format_ports():
    assert format_ports((3000, 5173)) == ":3000, 5173"
    assert format_ports((8080,)) == ":8080"


def test_format_memory():
    assert format_memory(45.2) == "45MB"
    assert format_memory(2048) == "2.0GB"


@pytest.mark.parametrize(
    "count, expected",
    [(0, "processes"), (1, "process"), (2, "processes")],
)
def test_pluralize_irregular(count, expected):
    assert pluralize(count, "process", "processes") == expected


def test_pluralize_regular():
    assert pluralize(1, "Server") == "Server"
    assert pluralize(3, "Server") == "Servers"
