from __future__ import annotations

import pendulum

from .dates import days_between, is_weekend, iter_days
from .models import ColumnHeader, HeaderBands, ViewUnit

MIN_MONTH_BAND_WIDTH = 60
WEEKDAY_LABELS = ("月", "火", "水", "木", "金", "土", "日")
"""Indexed by ISO weekday - 1."""


def build_headers(chart_start: pendulum.DateTime, total_days: int, view_unit: ViewUnit) -> HeaderBands:
    """
    Build the year-month, day-of-month and weekday bands for the chart range.

    Day and weekday headers are sampled every `view_unit.header_step` days;
    weekday headers are only produced for the day view. Weekends are flagged.
    """

    day_width = view_unit.day_width
    bands = HeaderBands()
    last_month: tuple[int, int] | None = None

    for index, day in enumerate(iter_days(chart_start, total_days)):
        month_key = (day.year, day.month)
        if month_key != last_month:
            bands.year_months.append(_month_band(day, chart_start, total_days, day_width))
            last_month = month_key

        if index % view_unit.header_step != 0:
            continue
        weekend = is_weekend(day)
        bands.days.append(
            ColumnHeader(
                label=str(day.day),
                position=index * day_width,
                width=day_width,
                date=day,
                is_weekend=weekend,
            )
        )
        if view_unit.shows_weekdays:
            bands.weekdays.append(
                ColumnHeader(
                    label=WEEKDAY_LABELS[day.isoweekday() - 1],
                    position=index * day_width,
                    width=day_width,
                    date=day,
                    is_weekend=weekend,
                )
            )

    return bands


def _month_band(day: pendulum.DateTime, chart_start: pendulum.DateTime, total_days: int, day_width: int) -> ColumnHeader:
    month_start = day.start_of("month")
    month_end = day.end_of("month").start_of("day")
    first = max(0, days_between(chart_start, month_start))
    last = min(total_days - 1, days_between(chart_start, month_end))
    width = (last - first + 1) * day_width
    return ColumnHeader(
        label=day.format("YYYY/MM"),
        position=first * day_width,
        width=max(width, MIN_MONTH_BAND_WIDTH),
        date=month_start,
    )
