from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Sequence

import pendulum

from .geometry import ViewConfig, compute_geometry
from .grouping import ExpansionState, TaskFilters, filter_tasks, vegetables_from_tasks
from .models import ChartGeometry, Priority, RowBar, Task, TaskStatus, Vegetable, ViewUnit, WorkReport

logger = logging.getLogger(__name__)

TaskCallback = Callable[[Task], None]
FilterCallback = Callable[[TaskFilters], None]
RangeCallback = Callable[[ViewConfig], None]


class GanttChart:
    """
    Interactive state around `compute_geometry`.

    Holds the input data plus the caller-owned selections (filters, expanded
    vegetables, view config) and notifies listeners when a task is activated or
    a selection changes. Geometry is recomputed on every `geometry()` call.
    """

    def __init__(
        self,
        tasks: Sequence[Task],
        reports: Sequence[WorkReport] = (),
        vegetables: Sequence[Vegetable] | None = None,
        config: ViewConfig | None = None,
        filters: TaskFilters | None = None,
        on_task_click: TaskCallback | None = None,
        on_filter_change: FilterCallback | None = None,
        on_range_change: RangeCallback | None = None,
    ) -> None:
        self.config = config or ViewConfig()
        self.filters = filters or TaskFilters()
        self.expansion = ExpansionState()
        self.on_task_click = on_task_click
        self.on_filter_change = on_filter_change
        self.on_range_change = on_range_change
        self.tasks: list[Task] = []
        self.reports: list[WorkReport] = []
        self.vegetables: list[Vegetable] = []
        self.load(tasks, reports, vegetables)

    def load(
        self,
        tasks: Sequence[Task],
        reports: Sequence[WorkReport] = (),
        vegetables: Sequence[Vegetable] | None = None,
    ) -> None:
        """Replace the input data; collapse toggles from earlier loads are kept."""
        self.tasks = list(tasks)
        self.reports = list(reports)
        self.vegetables = list(vegetables) if vegetables is not None else vegetables_from_tasks(self.tasks)
        seen = {veg.id for veg in self.vegetables} | {task.vegetable.id for task in self.tasks}
        added = self.expansion.seed(seen)
        if added:
            logger.debug("expanded %d newly seen vegetables", added)

    @property
    def filtered_tasks(self) -> list[Task]:
        return filter_tasks(self.tasks, self.filters)

    def geometry(self, today: pendulum.DateTime | None = None) -> ChartGeometry:
        return compute_geometry(
            self.tasks,
            self.reports,
            filters=self.filters,
            config=self.config,
            expansion=self.expansion,
            today=today,
        )

    def toggle_vegetable(self, vegetable_id: str) -> bool:
        return self.expansion.toggle(vegetable_id)

    def expand_all(self) -> None:
        self.expansion.expand_all()

    def collapse_all(self) -> None:
        self.expansion.collapse_all()

    def select_task(self, task_id: str) -> Task:
        """Activate a task by id and notify the click listener."""
        for task in self.tasks:
            if task.id == task_id:
                if self.on_task_click is not None:
                    self.on_task_click(task)
                return task
        raise KeyError(f"unknown task id {task_id!r}")

    def activate_bar(self, bar: RowBar) -> Task | None:
        """Activate a rendered bar; vegetable headings toggle instead of selecting."""
        if bar.row.task is None:
            self.toggle_vegetable(bar.row.vegetable.id)
            return None
        return self.select_task(bar.row.task.id)

    def set_vegetable_filter(self, vegetable_id: str | None) -> None:
        self._update_filters(replace(self.filters, vegetable_id=vegetable_id))

    def set_priority_filter(self, priority: Priority | None) -> None:
        self._update_filters(replace(self.filters, priority=priority))

    def set_status_filter(self, status: TaskStatus | None) -> None:
        self._update_filters(replace(self.filters, status=status))

    def set_search(self, query: str | None) -> None:
        self._update_filters(replace(self.filters, search=query or None))

    def set_date_range(self, start_date: str | None, end_date: str | None) -> None:
        self._update_config(replace(self.config, start_date=start_date, end_date=end_date))

    def set_view_unit(self, view_unit: ViewUnit) -> None:
        self._update_config(replace(self.config, view_unit=view_unit))

    def _update_filters(self, filters: TaskFilters) -> None:
        if filters == self.filters:
            return
        self.filters = filters
        if self.on_filter_change is not None:
            self.on_filter_change(filters)

    def _update_config(self, config: ViewConfig) -> None:
        if config == self.config:
            return
        range_changed = (config.start_date, config.end_date) != (self.config.start_date, self.config.end_date)
        self.config = config
        if range_changed and self.on_range_change is not None:
            self.on_range_change(config)
