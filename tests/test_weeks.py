"""Tests for the ISO week calendar and retention window."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from ragtracker.core import weeks
from ragtracker.errors import ValidationFailed


def test_week_key_same_for_whole_week():
    keys = {weeks.week_key_of(date(2026, 2, 9) + timedelta(days=i)) for i in range(7)}
    assert keys == {"2026-07"}


def test_week_key_monday_and_sunday():
    assert weeks.week_key_of(date(2026, 2, 9)) == "2026-07"
    assert weeks.week_key_of(date(2026, 2, 15)) == "2026-07"
    assert weeks.week_key_of(date(2026, 2, 16)) == "2026-08"


def test_week_key_iso_year_boundary():
    # Friday 2027-01-01 belongs to the last ISO week of 2026
    assert weeks.week_key_of(date(2027, 1, 1)) == "2026-53"
    # Monday 2024-12-30 belongs to week 1 of 2025
    assert weeks.week_key_of(date(2024, 12, 30)) == "2025-01"


def test_week_key_zero_padded():
    assert weeks.week_key_of(date(2026, 1, 5)) == "2026-02"


def test_week_start_is_monday():
    for offset in range(14):
        d = date(2026, 3, 1) + timedelta(days=offset)
        start = weeks.week_start_of(d)
        assert start.isoweekday() == 1
        assert start <= d < start + timedelta(days=7)


def test_week_start_of_key_roundtrips_with_key():
    start = weeks.week_start_of_key("2026-07")
    assert start == date(2026, 2, 9)
    assert weeks.week_key_of(start) == "2026-07"


def test_week_start_of_key_year_boundary():
    assert weeks.week_start_of_key("2026-53") == date(2026, 12, 28)


@pytest.mark.parametrize("bad", ["2026-7", "26-07", "2026/07", "", "2026-W07"])
def test_week_start_of_key_malformed(bad):
    with pytest.raises(ValidationFailed):
        weeks.week_start_of_key(bad)


def test_week_start_of_key_nonexistent_week():
    # 2025 has only 52 ISO weeks
    with pytest.raises(ValidationFailed):
        weeks.week_start_of_key("2025-53")


def test_previous_week_key():
    assert weeks.previous_week_key(date(2026, 2, 9)) == "2026-06"
    assert weeks.previous_week_key(date(2026, 1, 5)) == "2026-01"
    assert weeks.previous_week_key(date(2025, 12, 29)) == "2025-52"


def test_subtract_months_clamps_day():
    assert weeks.subtract_months(date(2026, 8, 31), 6) == date(2026, 2, 28)
    assert weeks.subtract_months(date(2026, 3, 31), 1) == date(2026, 2, 28)
    assert weeks.subtract_months(date(2026, 2, 12), 6) == date(2025, 8, 12)


def test_retention_cutoff():
    assert weeks.retention_cutoff(6, today=date(2026, 2, 12)) == date(2025, 8, 12)
    assert weeks.retention_cutoff(1, today=date(2026, 2, 12)) == date(2026, 1, 12)


def test_week_label():
    assert weeks.week_label(date(2026, 2, 9)) == "09 Feb – 15 Feb 2026"


def test_week_range_newest_first_and_bounded():
    today = date(2026, 2, 12)
    slots = weeks.week_range(6, today=today)
    assert slots[0].week_key == "2026-07"
    assert slots[0].week_start_date == date(2026, 2, 9)
    cutoff = weeks.retention_cutoff(6, today=today)
    assert all(s.week_start_date >= cutoff for s in slots)
    assert slots[-1].week_start_date - timedelta(days=7) < cutoff
    starts = [s.week_start_date for s in slots]
    assert starts == sorted(starts, reverse=True)
    assert len({s.week_key for s in slots}) == len(slots)


def test_week_range_one_month():
    slots = weeks.week_range(1, today=date(2026, 2, 12))
    # Mondays from 2026-02-09 back to 2026-01-12
    assert [s.week_key for s in slots] == ["2026-07", "2026-06", "2026-05", "2026-04", "2026-03"]


def test_week_columns_oldest_first():
    cols = weeks.week_columns(4, today=date(2026, 2, 12))
    assert [c.week_key for c in cols] == ["2026-04", "2026-05", "2026-06", "2026-07"]
    assert cols[-1].label == "09 Feb – 15 Feb 2026"
