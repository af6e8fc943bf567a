from __future__ import annotations

import datetime as _dt
from typing import Any

import pendulum

DISPLAY_TZ = pendulum.FixedTimezone(9 * 3600, name="+09:00")
"""All date arithmetic happens at start-of-day in this fixed UTC+9 offset."""

VIEW_PERIOD_MONTHS: dict[str, int] = {
    "6months": 3,
    "1year": 6,
    "3years": 18,
    "5years": 30,
}
"""Months either side of the anchor month for each named view period."""


class InvalidDate(ValueError):
    """Raised when a date string cannot be read by either parser."""


def normalize_date(value: Any) -> pendulum.DateTime:
    """
    Normalize a calendar date to start-of-day in the display timezone.

    ISO `YYYY-MM-DD` strings go through the strict parser first; anything else
    gets one lenient attempt before `InvalidDate` is raised.
    """

    if isinstance(value, _dt.datetime):
        # Naive datetimes are read as display-local wall time.
        return pendulum.instance(value, tz=DISPLAY_TZ).in_tz(DISPLAY_TZ).start_of("day")
    if isinstance(value, _dt.date):
        return pendulum.datetime(value.year, value.month, value.day, tz=DISPLAY_TZ)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate(f"expected a date string, got {value!r}")

    text = value.strip()
    try:
        return pendulum.from_format(text, "YYYY-MM-DD", tz=DISPLAY_TZ)
    except ValueError:
        pass
    return _fallback_parse(text)


def _fallback_parse(text: str) -> pendulum.DateTime:
    try:
        parsed = pendulum.parse(text, strict=False, tz=DISPLAY_TZ)
    except ValueError as exc:
        raise InvalidDate(f"cannot parse date {text!r}") from exc
    if not isinstance(parsed, _dt.date):
        raise InvalidDate(f"cannot parse date {text!r}")
    # Timestamps carry their own offset; keep the calendar day as written.
    return pendulum.datetime(parsed.year, parsed.month, parsed.day, tz=DISPLAY_TZ)


def normalize_date_optional(value: Any) -> pendulum.DateTime | None:
    """Like `normalize_date` but returns None for absent or unreadable values."""
    if value is None or value == "":
        return None
    try:
        return normalize_date(value)
    except InvalidDate:
        return None


def today(now: pendulum.DateTime | None = None) -> pendulum.DateTime:
    """Current day at start-of-day in the display timezone."""
    current = now if now is not None else pendulum.now(DISPLAY_TZ)
    return current.in_tz(DISPLAY_TZ).start_of("day")


def days_between(start: pendulum.DateTime, end: pendulum.DateTime) -> int:
    """Signed whole days from `start` to `end` (both start-of-day)."""
    return end.toordinal() - start.toordinal()


def iter_days(start: pendulum.DateTime, count: int):
    for offset in range(count):
        yield start.add(days=offset)


def is_weekend(day: pendulum.DateTime) -> bool:
    return day.isoweekday() in (6, 7)


def period_range(anchor: Any, period: str) -> tuple[pendulum.DateTime, pendulum.DateTime]:
    """
    Chart window for a named view period around `anchor`.

    The window starts on the first day of the earliest month and ends on the
    last day of the latest month.
    """

    if period not in VIEW_PERIOD_MONTHS:
        raise ValueError(f"unknown view period {period!r}; expected one of {sorted(VIEW_PERIOD_MONTHS)}")
    months = VIEW_PERIOD_MONTHS[period]
    base = normalize_date(anchor)
    start = base.subtract(months=months).start_of("month")
    end = base.add(months=months).end_of("month").start_of("day")
    return start, end


def to_iso(day: pendulum.DateTime) -> str:
    return day.format("YYYY-MM-DD")
