import pytest

from helpers import CUCUMBER, TOMATO, make_task

from farm_gantt.chart import GanttChart
from farm_gantt.dates import normalize_date
from farm_gantt.geometry import ViewConfig
from farm_gantt.models import Priority, ViewUnit

TODAY = normalize_date("2025-01-06")


def _chart(**kwargs):
    tasks = [
        make_task("t1", "2025-01-02", "2025-01-04", vegetable=TOMATO, priority=Priority.HIGH),
        make_task("t2", "2025-01-03", "2025-01-06", vegetable=CUCUMBER, priority=Priority.LOW),
    ]
    return GanttChart(tasks, config=ViewConfig(start_date="2025-01-01", end_date="2025-01-10"), **kwargs)


def test_all_vegetables_expanded_on_first_load():
    chart = _chart()

    kinds = [bar.row.kind for bar in chart.geometry(today=TODAY).bars]

    assert kinds == ["vegetable", "task", "vegetable", "task"]


def test_toggle_survives_reload():
    chart = _chart()
    chart.toggle_vegetable("v1")

    chart.load(chart.tasks + [make_task("t3", "2025-01-05", "2025-01-06", vegetable=TOMATO)])

    rows = chart.geometry(today=TODAY).rows
    assert [row.name for row in rows if row.vegetable.id == "v1"] == ["トマト"]


def test_vegetables_first_seen_on_a_later_load_are_expanded():
    chart = GanttChart([], config=ViewConfig(start_date="2025-01-01", end_date="2025-01-10"))

    chart.load([make_task("t1", "2025-01-02", "2025-01-04")])

    assert [row.kind for row in chart.geometry(today=TODAY).rows] == ["vegetable", "task"]


def test_task_vegetable_missing_from_vegetable_list_is_expanded():
    chart = GanttChart(
        [make_task("t1", "2025-01-02", "2025-01-04", vegetable=CUCUMBER)],
        vegetables=[TOMATO],
        config=ViewConfig(start_date="2025-01-01", end_date="2025-01-10"),
    )

    assert [row.kind for row in chart.geometry(today=TODAY).rows] == ["vegetable", "task"]
    assert chart.expansion.is_expanded("v2")


def test_collapse_all_covers_task_only_vegetables():
    chart = GanttChart([make_task("t1", "2025-01-02", "2025-01-04", vegetable=CUCUMBER)], vegetables=[TOMATO])

    chart.collapse_all()

    assert not chart.expansion.is_expanded("v2")


def test_select_task_fires_click_callback():
    clicked = []
    chart = _chart(on_task_click=clicked.append)

    chart.select_task("t2")

    assert [task.id for task in clicked] == ["t2"]
    with pytest.raises(KeyError):
        chart.select_task("missing")


def test_activating_heading_bar_toggles_group():
    clicked = []
    chart = _chart(on_task_click=clicked.append)
    heading = chart.geometry(today=TODAY).bars[0]

    assert chart.activate_bar(heading) is None
    assert not chart.expansion.is_expanded(heading.row.vegetable.id)
    assert clicked == []


def test_filter_change_notifies_once_per_change():
    changes = []
    chart = _chart(on_filter_change=changes.append)

    chart.set_priority_filter(Priority.HIGH)
    chart.set_priority_filter(Priority.HIGH)
    chart.set_vegetable_filter("v1")

    assert len(changes) == 2
    assert changes[-1].priority is Priority.HIGH
    assert [task.id for task in chart.filtered_tasks] == ["t1"]


def test_range_change_callback_only_for_date_changes():
    ranges = []
    chart = _chart(on_range_change=ranges.append)

    chart.set_view_unit(ViewUnit.WEEK)
    chart.set_date_range("2025-01-01", "2025-01-31")

    assert [(cfg.start_date, cfg.end_date) for cfg in ranges] == [("2025-01-01", "2025-01-31")]
    assert chart.geometry(today=TODAY).day_width == 20
