"""
Tests for timezone parsing, timestamp formatting and report lines.
"""

from __future__ import annotations

import io
from datetime import timedelta, timezone

import pytest

from aura_monitor.core.exceptions import ConfigError
from aura_monitor.report import (
    Colors,
    ScheduleReporter,
    format_ts,
    parse_output_tz,
    to_utc_iso,
)


def test_parse_utc_and_local():
    assert parse_output_tz("UTC") is timezone.utc
    assert parse_output_tz(" utc ") is timezone.utc
    assert parse_output_tz("local") is None


@pytest.mark.parametrize(
    "value,delta",
    [
        ("+09:00", timedelta(hours=9)),
        ("-05:30", -timedelta(hours=5, minutes=30)),
        ("+00:00", timedelta(0)),
    ],
)
def test_parse_fixed_offset(value, delta):
    assert parse_output_tz(value).utcoffset(None) == delta


def test_parse_iana_zone():
    tz = parse_output_tz("Asia/Dubai")
    assert format_ts(0, tz) == "1970-01-01T04:00:00+04:00"


@pytest.mark.parametrize("value", ["Mars/Olympus", "+25:00", "+09:75", "EST5", "", "9"])
def test_parse_invalid(value):
    with pytest.raises(ConfigError):
        parse_output_tz(value)


def test_to_utc_iso():
    assert to_utc_iso(0) == "1970-01-01T00:00:00+00:00"
    assert to_utc_iso(6_000) == "1970-01-01T00:00:06+00:00"
    assert to_utc_iso(1_500) == "1970-01-01T00:00:01.500000+00:00"


def test_format_ts_offset():
    tz = parse_output_tz("+09:00")
    assert format_ts(6_000, tz) == "1970-01-01T09:00:06+09:00"


def test_colors_never_and_always():
    assert Colors("never").epoch("7") == "7"
    assert Colors("always").epoch("7") == "\x1b[36m7\x1b[0m"


def test_colors_auto_on_non_tty():
    assert Colors("auto", io.StringIO()).enabled is False


def test_reporter_lines():
    out = io.StringIO()
    reporter = ScheduleReporter(out_tz=parse_output_tz("+01:00"), stream=out)
    reporter.epoch(2, 2400, 3599)
    reporter.identity("0xbb")
    reporter.slot(2401, 3_600_000)
    reporter.authority_set_changed(3, 4)
    lines = out.getvalue().splitlines()
    assert lines == [
        "",
        "epoch=2 / start_slot=2400 / end_slot=3599",
        "author=0xbb",
        "",
        "slot 2401: 1970-01-01T02:00:00+01:00 (UTC 1970-01-01T01:00:00+00:00)",
        "",
        "authority set changed (len 3 -> 4)",
    ]
