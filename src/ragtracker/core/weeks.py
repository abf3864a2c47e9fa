"""Week calendar: ISO-8601 week keys, week starts and the retention window.

All functions are pure given ``today``. When ``today`` is omitted the current
UTC date is used; the organisation has a single week definition.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from ragtracker.errors import ValidationFailed

WEEK_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class WeekSlot:
    """One ISO week: its key, its Monday and a display label."""

    week_key: str
    week_start_date: date
    label: str


def utc_today() -> date:
    return datetime.now(UTC).date()


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def week_key_of(value: date) -> str:
    """Return the ``YYYY-WW`` ISO week key for a date.

    The ISO year is the year of the Thursday in the same week, so
    2027-01-01 (a Friday) belongs to ``2026-53``.
    """
    iso = _as_date(value).isocalendar()
    return f"{iso.year:04d}-{iso.week:02d}"


def week_start_of(value: date) -> date:
    """Return the Monday of the week containing ``value``."""
    d = _as_date(value)
    return d - timedelta(days=d.isoweekday() - 1)


def week_start_of_key(week_key: str) -> date:
    """Return the Monday identified by a ``YYYY-WW`` key."""
    match = WEEK_KEY_PATTERN.match(week_key or "")
    if not match:
        raise ValidationFailed(f"Malformed week key: {week_key!r} (expected YYYY-WW)")
    year, week = int(match.group(1)), int(match.group(2))
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError as e:
        raise ValidationFailed(f"Week {week_key} does not exist") from e


def previous_week_key(week_start_date: date) -> str:
    return week_key_of(week_start_date - timedelta(days=7))


def subtract_months(value: date, months: int) -> date:
    """Step back whole calendar months, clamping to the last day of the target month."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def retention_cutoff(retention_months: int, *, today: date | None = None) -> date:
    """Oldest date any report may start on: today minus ``retention_months``."""
    return subtract_months(today or utc_today(), retention_months)


def week_label(week_start_date: date) -> str:
    end = week_start_date + timedelta(days=6)
    return f"{week_start_date:%d %b} – {end:%d %b %Y}"


def _slot(week_start_date: date) -> WeekSlot:
    return WeekSlot(
        week_key=week_key_of(week_start_date),
        week_start_date=week_start_date,
        label=week_label(week_start_date),
    )


def week_range(retention_months: int, *, today: date | None = None) -> list[WeekSlot]:
    """Every week from the current one back to the retention cutoff, newest first."""
    today = today or utc_today()
    cutoff = retention_cutoff(retention_months, today=today)
    cursor = week_start_of(today)
    weeks: list[WeekSlot] = []
    while cursor >= cutoff:
        weeks.append(_slot(cursor))
        cursor -= timedelta(days=7)
    return weeks


def week_columns(count: int, *, today: date | None = None) -> list[WeekSlot]:
    """The last ``count`` weeks ending with the current one, oldest first."""
    current = week_start_of(today or utc_today())
    return [_slot(current - timedelta(weeks=offset)) for offset in range(count - 1, -1, -1)]
