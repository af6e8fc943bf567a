from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import pendulum

from .dates import InvalidDate, days_between, normalize_date, normalize_date_optional
from .dates import today as current_day
from .grouping import ExpansionState, TaskFilters, build_groups, filter_tasks, flatten_rows
from .headers import build_headers
from .models import ChartGeometry, ReportMarker, RowBar, Task, TodayLine, ViewUnit, WorkReport

logger = logging.getLogger(__name__)

# Layout knobs (pixels unless noted).
DISPLAY_OFFSET_DAYS = 2  # uniform shift for bars, markers and the today line
MIN_BAR_WIDTH = 20
ROW_HEIGHT = 48
DEFAULT_WINDOW_DAYS = 30
VEGETABLE_BAR_COLOR = "#cbd5e1"


class UnresolvedReportPlacement(LookupError):
    """Raised when a work report has no task row to sit on."""


@dataclass(frozen=True)
class ViewConfig:
    """Explicit chart window (ISO strings, either may be omitted) and zoom level."""

    start_date: str | None = None
    end_date: str | None = None
    view_unit: ViewUnit = ViewUnit.DAY


def resolve_chart_window(
    tasks: Iterable[Task],
    config: ViewConfig,
    today: pendulum.DateTime | None = None,
) -> tuple[pendulum.DateTime, pendulum.DateTime]:
    """
    Pick the chart's first and last day.

    Explicit bounds win; otherwise bounds come from the earliest start and
    latest end among tasks with readable dates; with nothing to go on the
    chart shows a default window beginning today.
    """

    explicit_start = _explicit_bound(config.start_date, "start_date")
    explicit_end = _explicit_bound(config.end_date, "end_date")
    if explicit_start is not None and explicit_end is not None:
        if explicit_end < explicit_start:
            raise ValueError(f"chart end {config.end_date} precedes chart start {config.start_date}")
        return explicit_start, explicit_end

    starts: list[pendulum.DateTime] = []
    ends: list[pendulum.DateTime] = []
    for task in tasks:
        start = normalize_date_optional(task.start)
        end = normalize_date_optional(task.end)
        if start is None or end is None:
            continue
        starts.append(start)
        ends.append(end)

    base = current_day(today)
    chart_start = explicit_start or (min(starts) if starts else base)
    if explicit_end is not None:
        chart_end = explicit_end
    elif ends:
        chart_end = max(ends)
    else:
        chart_end = chart_start.add(days=DEFAULT_WINDOW_DAYS - 1)
    if chart_end < chart_start:
        chart_end = chart_start
    return chart_start, chart_end


def _explicit_bound(value: str | None, field_name: str) -> pendulum.DateTime | None:
    if value is None or value == "":
        return None
    try:
        return normalize_date(value)
    except InvalidDate:
        logger.warning("ignoring unreadable %s %r", field_name, value)
        return None


def task_bar(
    task_start: pendulum.DateTime,
    task_end: pendulum.DateTime,
    chart_start: pendulum.DateTime,
    total_days: int,
    day_width: int,
) -> tuple[float, float, int, int]:
    """
    Return (left, width, start_offset_days, duration_days) for a task bar.

    The start offset is reported before the display shift is applied. Portions
    outside the chart window are clipped and the width never drops below
    `MIN_BAR_WIDTH`.
    """

    start_offset = days_between(chart_start, task_start)
    duration = days_between(task_start, task_end) + 1
    shifted_offset = start_offset + DISPLAY_OFFSET_DAYS

    left = max(0, shifted_offset * day_width)
    width = duration * day_width
    if shifted_offset < 0:
        left = 0
        width = width + shifted_offset * day_width

    end_offset = start_offset + duration - 1
    if end_offset >= total_days:
        excess_days = end_offset - total_days + 1
        width -= excess_days * day_width

    return left, max(MIN_BAR_WIDTH, width), start_offset, duration


def overlaps_window(
    task_start: pendulum.DateTime,
    task_end: pendulum.DateTime,
    chart_start: pendulum.DateTime,
    chart_end: pendulum.DateTime,
) -> bool:
    return task_start <= chart_end and task_end >= chart_start


def _window_dates(
    task: Task,
    chart_start: pendulum.DateTime,
    chart_end: pendulum.DateTime,
) -> tuple[pendulum.DateTime, pendulum.DateTime] | None:
    """Readable task dates that overlap the window, or None when the task has no bar."""
    try:
        task_start = normalize_date(task.start)
        task_end = normalize_date(task.end)
    except InvalidDate as exc:
        logger.debug("skipping task %s: %s", task.id, exc)
        return None
    if not overlaps_window(task_start, task_end, chart_start, chart_end):
        logger.debug("skipping task %s: outside %s..%s", task.id, chart_start.date(), chart_end.date())
        return None
    return task_start, task_end


def layout_rows(
    rows,
    chart_start: pendulum.DateTime,
    chart_end: pendulum.DateTime,
    view_unit: ViewUnit,
) -> list[RowBar]:
    """
    Place a bar for every visible row.

    Vegetable headings span the whole canvas, display offset included, and are
    kept only while at least one of their tasks can be drawn in the window,
    collapsed or not. Task rows with unreadable dates or no overlap with the
    window are left out, so later row indices close up.
    """

    total_days = days_between(chart_start, chart_end) + 1
    day_width = view_unit.day_width
    bars: list[RowBar] = []

    for row in rows:
        if row.task is None:
            if row.group is not None and not any(
                _window_dates(task, chart_start, chart_end) for task in row.group.tasks
            ):
                logger.debug("skipping vegetable %s: no task inside the chart window", row.vegetable.id)
                continue
            bars.append(
                RowBar(
                    row=row,
                    index=len(bars),
                    left=0,
                    width=(total_days + DISPLAY_OFFSET_DAYS) * day_width,
                    color=VEGETABLE_BAR_COLOR,
                )
            )
            continue

        task = row.task
        dates = _window_dates(task, chart_start, chart_end)
        if dates is None:
            continue

        task_start, task_end = dates
        left, width, start_offset, duration = task_bar(task_start, task_end, chart_start, total_days, day_width)
        bars.append(
            RowBar(
                row=row,
                index=len(bars),
                left=left,
                width=width,
                color=task.bar_color,
                start_offset_days=start_offset,
                duration_days=duration,
            )
        )

    return bars


def _distance_days(day: pendulum.DateTime, task: Task) -> int:
    start = normalize_date_optional(task.start)
    end = normalize_date_optional(task.end)
    if start is None or end is None:
        return 0
    if day < start:
        return days_between(day, start)
    if day > end:
        return days_between(end, day)
    return 0


def match_report_row(report: WorkReport, report_date: pendulum.DateTime, bars: Sequence[RowBar]) -> RowBar:
    """
    Choose the task row a work report belongs on.

    Task rows of the report's vegetable are candidates. Rows whose task name
    contains one of the work type's keywords win, nearest by date first;
    otherwise the first candidate is used.
    """

    candidates = [
        bar for bar in bars if bar.row.task is not None and bar.row.vegetable.id == report.vegetable_id
    ]
    if not candidates:
        raise UnresolvedReportPlacement(f"no task row for vegetable {report.vegetable_id}")

    keyword_matches = [bar for bar in candidates if report.work_type.matches(bar.row.name)]
    if keyword_matches:
        # min() keeps the first of equally near rows.
        return min(keyword_matches, key=lambda bar: _distance_days(report_date, bar.row.task))
    return candidates[0]


def place_reports(
    reports: Iterable[WorkReport],
    bars: Sequence[RowBar],
    chart_start: pendulum.DateTime,
    chart_end: pendulum.DateTime,
    view_unit: ViewUnit,
    row_height: int = ROW_HEIGHT,
) -> list[ReportMarker]:
    markers: list[ReportMarker] = []
    for report in reports:
        try:
            report_date = normalize_date(report.work_date)
        except InvalidDate as exc:
            logger.debug("skipping work report %s: %s", report.id, exc)
            continue
        if report_date < chart_start or report_date > chart_end:
            continue
        try:
            bar = match_report_row(report, report_date, bars)
        except UnresolvedReportPlacement as exc:
            logger.debug("skipping work report %s: %s", report.id, exc)
            continue

        offset = days_between(chart_start, report_date) + DISPLAY_OFFSET_DAYS
        markers.append(
            ReportMarker(
                report=report,
                row_index=bar.index,
                x=offset * view_unit.day_width,
                y=view_unit.header_height + bar.index * row_height + row_height / 2,
            )
        )
    return markers


def today_line(
    chart_start: pendulum.DateTime,
    total_days: int,
    view_unit: ViewUnit,
    today: pendulum.DateTime | None = None,
) -> TodayLine | None:
    day = current_day(today)
    offset = days_between(chart_start, day)
    if offset < 0 or offset > total_days:
        return None
    return TodayLine(date=day, offset_days=offset, x=(offset + DISPLAY_OFFSET_DAYS) * view_unit.day_width)


def compute_geometry(
    tasks: Sequence[Task],
    reports: Sequence[WorkReport] = (),
    filters: TaskFilters | None = None,
    config: ViewConfig | None = None,
    expansion: ExpansionState | None = None,
    today: pendulum.DateTime | None = None,
) -> ChartGeometry:
    """
    Lay out one render pass from scratch.

    - Filters tasks, groups them by vegetable and flattens to rows.
    - Resolves the chart window and builds the header bands.
    - Places row bars, work-report markers and the today line.

    Nothing here is cached; calling it again with the same inputs yields an
    equal layout.
    """

    config = config or ViewConfig()
    day = current_day(today)

    groups = build_groups(tasks, reports, filters, expansion)
    rows = flatten_rows(groups)
    chart_start, chart_end = resolve_chart_window(filter_tasks(tasks, filters), config, today=day)
    total_days = days_between(chart_start, chart_end) + 1

    bars = layout_rows(rows, chart_start, chart_end, config.view_unit)
    grouped_reports = [report for group in groups for report in group.reports]
    markers = place_reports(grouped_reports, bars, chart_start, chart_end, config.view_unit)

    return ChartGeometry(
        chart_start=chart_start,
        chart_end=chart_end,
        total_days=total_days,
        view_unit=config.view_unit,
        headers=build_headers(chart_start, total_days, config.view_unit),
        bars=bars,
        markers=markers,
        today=today_line(chart_start, total_days, config.view_unit, today=day),
        row_height=ROW_HEIGHT,
        display_offset_days=DISPLAY_OFFSET_DAYS,
    )
