import pendulum
import pytest

from helpers import CUCUMBER, TOMATO, make_report, make_task

from farm_gantt.dates import normalize_date
from farm_gantt.geometry import (
    DISPLAY_OFFSET_DAYS,
    MIN_BAR_WIDTH,
    UnresolvedReportPlacement,
    ViewConfig,
    compute_geometry,
    match_report_row,
    task_bar,
    today_line,
)
from farm_gantt.grouping import ExpansionState, TaskFilters
from farm_gantt.models import ViewUnit, WorkType

JAN = ViewConfig(start_date="2025-01-01", end_date="2025-01-10", view_unit=ViewUnit.DAY)
TODAY = normalize_date("2025-01-06")


def _bar(chart_start, task_start, task_end, total_days=10, day_width=24):
    return task_bar(normalize_date(task_start), normalize_date(task_end), normalize_date(chart_start), total_days, day_width)


def test_task_bar_inside_window_is_shifted_by_display_offset():
    left, width, start_offset, duration = _bar("2025-01-01", "2025-01-03", "2025-01-05")

    assert (start_offset, duration) == (2, 3)
    assert left == (2 + 2) * 24 == 96
    assert width == 3 * 24 == 72


def test_task_bar_starting_before_window_is_clipped_at_left_edge():
    left, width, start_offset, duration = _bar("2025-01-01", "2024-12-25", "2025-01-05")

    assert (start_offset, duration) == (-7, 12)
    assert left == 0
    assert width == 12 * 24 - 5 * 24


def test_task_bar_ending_after_window_loses_excess_days():
    left, width, _, _ = _bar("2025-01-01", "2025-01-08", "2025-01-15")

    assert left == 9 * 24
    assert width == 8 * 24 - 5 * 24


def test_task_bar_never_narrower_than_minimum():
    left, width, _, duration = _bar("2025-01-01", "2025-01-05", "2025-01-03")

    assert duration == -1
    assert width == MIN_BAR_WIDTH
    assert left >= 0


def test_compute_geometry_places_heading_and_task_bars():
    tasks = [make_task("t1", "2025-01-03", "2025-01-05")]

    geometry = compute_geometry(tasks, config=JAN, today=TODAY)

    assert geometry.total_days == 10
    assert geometry.total_width == (10 + DISPLAY_OFFSET_DAYS) * 24 == 288
    heading, task = geometry.bars
    assert (heading.row.kind, heading.left, heading.width) == ("vegetable", 0, 288)
    assert (task.row.kind, task.left, task.width, task.index) == ("task", 96, 72, 1)


def test_tasks_outside_window_are_omitted_entirely():
    tasks = [
        make_task("inside", "2025-01-02", "2025-01-03"),
        make_task("outside", "2025-02-01", "2025-02-03"),
    ]

    geometry = compute_geometry(tasks, config=JAN, today=TODAY)

    names = [bar.row.name for bar in geometry.bars if bar.row.kind == "task"]
    assert names == ["inside"]


def test_task_with_unreadable_date_is_skipped():
    tasks = [make_task("bad", "someday", "2025-01-03"), make_task("good", "2025-01-02", "2025-01-03")]

    geometry = compute_geometry(tasks, config=JAN, today=TODAY)

    assert [bar.row.name for bar in geometry.bars] == ["トマト", "good"]


def test_window_derived_from_tasks_without_explicit_range():
    tasks = [
        make_task("t1", "2025-03-05", "2025-03-08"),
        make_task("t2", "2025-03-02", "2025-03-04", vegetable=CUCUMBER),
    ]

    geometry = compute_geometry(tasks, today=TODAY)

    assert geometry.chart_start == normalize_date("2025-03-02")
    assert geometry.chart_end == normalize_date("2025-03-08")


def test_default_window_starts_today_when_no_tasks():
    geometry = compute_geometry([], today=normalize_date("2025-03-01"))

    assert geometry.chart_start == normalize_date("2025-03-01")
    assert geometry.total_days == 30
    assert geometry.bars == []


def test_inverted_explicit_range_is_rejected():
    with pytest.raises(ValueError):
        compute_geometry([], config=ViewConfig(start_date="2025-02-01", end_date="2025-01-01"), today=TODAY)


def test_report_marker_snaps_to_keyword_matching_task():
    tasks = [
        make_task("t1", "2025-01-01", "2025-01-03", name="定植"),
        make_task("t2", "2025-01-04", "2025-01-09", name="収穫"),
    ]
    reports = [make_report("r1", "2025-01-04", "v1", WorkType.HARVESTING)]

    (marker,) = compute_geometry(tasks, reports, config=JAN, today=TODAY).markers

    assert marker.row_index == 2
    assert marker.x == (3 + DISPLAY_OFFSET_DAYS) * 24
    assert marker.y == 84 + 2 * 48 + 24
    assert marker.color == WorkType.HARVESTING.color


def test_report_without_keyword_match_uses_first_task_of_vegetable():
    tasks = [
        make_task("t1", "2025-01-01", "2025-01-03", name="定植"),
        make_task("t2", "2025-01-04", "2025-01-09", name="収穫"),
    ]
    reports = [make_report("r1", "2025-01-02", "v1", WorkType.WATERING)]

    (marker,) = compute_geometry(tasks, reports, config=JAN, today=TODAY).markers

    assert marker.row_index == 1


def test_keyword_ties_prefer_task_nearest_the_report_date():
    tasks = [
        make_task("early", "2025-01-01", "2025-01-02", name="収穫"),
        make_task("late", "2025-01-08", "2025-01-10", name="収穫"),
    ]
    reports = [make_report("r1", "2025-01-09", "v1", WorkType.HARVESTING)]

    (marker,) = compute_geometry(tasks, reports, config=JAN, today=TODAY).markers

    assert marker.row_index == 2


def test_report_outside_window_is_excluded():
    tasks = [make_task("t1", "2025-01-01", "2025-01-03")]
    reports = [make_report("r1", "2025-01-20", "v1")]

    assert compute_geometry(tasks, reports, config=JAN, today=TODAY).markers == []


def test_report_for_vegetable_without_tasks_is_dropped_with_its_group():
    tasks = [make_task("t1", "2025-01-02", "2025-01-03", vegetable=CUCUMBER)]
    reports = [make_report("r1", "2025-01-01", "v1")]

    geometry = compute_geometry(tasks, reports, config=JAN, today=TODAY)

    assert geometry.markers == []
    assert all(bar.row.vegetable.id != "v1" for bar in geometry.bars)


def test_reports_of_collapsed_group_have_no_row():
    tasks = [make_task("t1", "2025-01-02", "2025-01-03")]
    reports = [make_report("r1", "2025-01-02", "v1")]
    expansion = ExpansionState(collapsed=["v1"])

    geometry = compute_geometry(tasks, reports, config=JAN, expansion=expansion, today=TODAY)

    assert [bar.row.kind for bar in geometry.bars] == ["vegetable"]
    assert geometry.markers == []


def test_fresh_expansion_state_lays_out_like_no_state():
    tasks = [make_task("t1", "2025-01-02", "2025-01-03"), make_task("t2", "2025-01-04", "2025-01-05", vegetable=CUCUMBER)]

    fresh = compute_geometry(tasks, config=JAN, expansion=ExpansionState(), today=TODAY)
    default = compute_geometry(tasks, config=JAN, today=TODAY)

    assert [bar.row.kind for bar in fresh.bars] == ["vegetable", "task", "vegetable", "task"]
    assert fresh == default


def test_bars_and_today_line_fit_inside_canvas_at_window_end():
    tasks = [make_task("t1", "2025-01-09", "2025-01-10")]

    geometry = compute_geometry(tasks, config=JAN, today=normalize_date("2025-01-10"))

    heading, task = geometry.bars
    assert (task.left, task.width) == (240, 48)
    assert task.left + task.width <= geometry.total_width == 288
    assert heading.width == geometry.total_width
    assert geometry.today.x == 264 < geometry.total_width


def test_vegetable_heading_dropped_when_no_task_is_in_window():
    tasks = [
        make_task("inside", "2025-01-02", "2025-01-03"),
        make_task("late", "2025-02-01", "2025-02-03", vegetable=CUCUMBER),
        make_task("undated", "someday", "2025-01-03", vegetable=CUCUMBER),
    ]

    geometry = compute_geometry(tasks, config=JAN, today=TODAY)

    assert [(bar.row.kind, bar.row.vegetable.id) for bar in geometry.bars] == [("vegetable", "v1"), ("task", "v1")]
    assert [bar.index for bar in geometry.bars] == [0, 1]


def test_collapsed_heading_dropped_when_no_task_is_in_window():
    tasks = [make_task("inside", "2025-01-02", "2025-01-03"), make_task("late", "2025-02-01", "2025-02-03", vegetable=CUCUMBER)]

    geometry = compute_geometry(tasks, config=JAN, expansion=ExpansionState(collapsed=["v1", "v2"]), today=TODAY)

    assert [bar.row.vegetable.id for bar in geometry.bars] == ["v1"]


def test_match_report_row_raises_when_unplaceable():
    geometry = compute_geometry([make_task("t1", "2025-01-02", "2025-01-03")], config=JAN, today=TODAY)
    report = make_report("r1", "2025-01-02", "v9")

    with pytest.raises(UnresolvedReportPlacement):
        match_report_row(report, normalize_date(report.work_date), geometry.bars)


def test_today_line_on_chart_start_equals_display_offset():
    chart_start = normalize_date("2025-01-01")
    # 16:00 UTC on Dec 31 is already Jan 1 in the display timezone.
    now = pendulum.datetime(2024, 12, 31, 16, 0, tz="UTC")

    line = today_line(chart_start, 10, ViewUnit.DAY, today=now)

    assert line is not None
    assert line.offset_days == 0
    assert line.x == DISPLAY_OFFSET_DAYS * 24


def test_today_line_omitted_outside_window():
    chart_start = normalize_date("2025-01-01")

    assert today_line(chart_start, 10, ViewUnit.DAY, today=normalize_date("2024-12-31")) is None
    assert today_line(chart_start, 10, ViewUnit.DAY, today=normalize_date("2025-01-12")) is None


def test_geometry_is_recomputed_identically():
    tasks = [make_task("t1", "2025-01-03", "2025-01-05"), make_task("t2", "2025-01-01", "2025-01-09", vegetable=CUCUMBER)]
    reports = [make_report("r1", "2025-01-04", "v1")]
    filters = TaskFilters(vegetable_id="all")

    first = compute_geometry(tasks, reports, filters, JAN, today=TODAY)
    second = compute_geometry(tasks, reports, filters, JAN, today=TODAY)

    assert first == second
