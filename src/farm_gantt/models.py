from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

import pendulum


RowKind = Literal["vegetable", "task"]
"""Allowed hierarchical row types: vegetable heading, task (indented one level)."""


class TaskStatus(Enum):
    PENDING = ("pending", "未開始", "#94a3b8")
    IN_PROGRESS = ("in_progress", "進行中", "#3b82f6")
    COMPLETED = ("completed", "完了", "#10b981")
    CANCELLED = ("cancelled", "中止", "#ef4444")

    def __init__(self, code: str, label: str, color: str) -> None:
        self.code = code
        self.label = label
        self.color = color

    @classmethod
    def from_code(cls, code: str) -> "TaskStatus":
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"unknown task status {code!r}")


class Priority(Enum):
    LOW = ("low", "低", "#94a3b8")
    MEDIUM = ("medium", "中", "#f59e0b")
    HIGH = ("high", "高", "#ef4444")

    def __init__(self, code: str, label: str, color: str) -> None:
        self.code = code
        self.label = label
        self.color = color

    @classmethod
    def from_code(cls, code: str) -> "Priority":
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"unknown priority {code!r}")


class WorkType(Enum):
    """
    Closed set of work-report categories.

    Each member carries its marker colour, icon, display label and the task-name
    keywords used to snap a report onto a task row.
    """

    SEEDING = ("seeding", "播種", "#10b981", "🌱", ("播種", "育苗"))
    PLANTING = ("planting", "定植", "#3b82f6", "🌿", ("定植",))
    FERTILIZING = ("fertilizing", "施肥", "#8b5cf6", "🧪", ("施肥",))
    WATERING = ("watering", "灌水", "#06b6d4", "💧", ("灌水",))
    WEEDING = ("weeding", "除草", "#eab308", "🌾", ("除草",))
    PRUNING = ("pruning", "整枝", "#f97316", "✂️", ("整枝", "摘芯", "摘葉", "摘果"))
    HARVESTING = ("harvesting", "収穫", "#ef4444", "🍅", ("収穫",))
    OTHER = ("other", "その他", "#6b7280", "⚡", ("その他",))

    def __init__(self, code: str, label: str, color: str, icon: str, keywords: tuple[str, ...]) -> None:
        self.code = code
        self.label = label
        self.color = color
        self.icon = icon
        self.keywords = keywords

    @classmethod
    def from_code(cls, code: str) -> "WorkType":
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"unknown work type {code!r}")

    def matches(self, task_name: str) -> bool:
        return any(keyword in task_name for keyword in self.keywords)


class ViewUnit(Enum):
    """Timeline zoom level: pixels per day and how often a day header is drawn."""

    DAY = ("day", 24, 1, 84)
    WEEK = ("week", 20, 7, 68)
    MONTH = ("month", 6, 15, 68)

    def __init__(self, code: str, day_width: int, header_step: int, header_height: int) -> None:
        self.code = code
        self.day_width = day_width
        self.header_step = header_step
        self.header_height = header_height

    @classmethod
    def from_code(cls, code: str) -> "ViewUnit":
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"unknown view unit {code!r}; expected day, week or month")

    @property
    def shows_weekdays(self) -> bool:
        return self is ViewUnit.DAY


@dataclass(frozen=True)
class Vegetable:
    id: str
    name: str
    variety: str = ""
    status: str | None = None


@dataclass(frozen=True)
class AssignedUser:
    id: str
    name: str


@dataclass
class Task:
    """Planned unit of work on one vegetable; dates stay as received until layout."""

    id: str
    name: str
    start: str
    end: str
    vegetable: Vegetable
    progress: int = 0
    status: TaskStatus = TaskStatus.PENDING
    priority: Priority = Priority.MEDIUM
    assigned_user: AssignedUser | None = None
    color: str | None = None

    @property
    def bar_color(self) -> str:
        return self.color or self.status.color


@dataclass
class WorkReport:
    """Single-day record of work actually performed."""

    id: str
    work_date: str
    vegetable_id: str
    work_type: WorkType = WorkType.OTHER
    work_notes: str | None = None
    harvest_amount: float | None = None
    expected_revenue: float | None = None


@dataclass
class VegetableGroup:
    """One vegetable with its filtered tasks and reports; rebuilt on every pass."""

    vegetable: Vegetable
    tasks: list[Task] = field(default_factory=list)
    reports: list[WorkReport] = field(default_factory=list)
    expanded: bool = True

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @property
    def average_progress(self) -> int:
        """Mean task progress rounded half-up; 0 for an empty group."""
        if not self.tasks:
            return 0
        total = sum(task.progress for task in self.tasks)
        return int(total / len(self.tasks) + 0.5)


@dataclass
class HierarchicalRow:
    """
    Flattened render unit.

    Vegetable rows carry their group; task rows carry the task and sit one
    indentation level below their vegetable.
    """

    order: int
    indent: int
    kind: RowKind
    vegetable: Vegetable
    name: str
    group: VegetableGroup | None = None
    task: Task | None = None

    @property
    def progress(self) -> int:
        if self.task is not None:
            return self.task.progress
        if self.group is not None:
            return self.group.average_progress
        return 0


@dataclass
class ColumnHeader:
    label: str
    position: float
    width: float
    date: pendulum.DateTime | None = None
    is_weekend: bool = False


@dataclass
class HeaderBands:
    year_months: list[ColumnHeader] = field(default_factory=list)
    days: list[ColumnHeader] = field(default_factory=list)
    weekdays: list[ColumnHeader] = field(default_factory=list)


@dataclass
class RowBar:
    """Horizontal bar for one visible row, in pixels from the chart's left edge."""

    row: HierarchicalRow
    index: int
    left: float
    width: float
    color: str
    start_offset_days: int | None = None
    duration_days: int | None = None


@dataclass
class ReportMarker:
    report: WorkReport
    row_index: int
    x: float
    y: float

    @property
    def color(self) -> str:
        return self.report.work_type.color

    @property
    def icon(self) -> str:
        return self.report.work_type.icon


@dataclass
class TodayLine:
    date: pendulum.DateTime
    offset_days: int
    x: float


@dataclass
class ChartGeometry:
    """Complete pixel layout for one render pass."""

    chart_start: pendulum.DateTime
    chart_end: pendulum.DateTime
    total_days: int
    view_unit: ViewUnit
    headers: HeaderBands
    bars: list[RowBar] = field(default_factory=list)
    markers: list[ReportMarker] = field(default_factory=list)
    today: TodayLine | None = None
    row_height: int = 48
    display_offset_days: int = 0

    @property
    def day_width(self) -> int:
        return self.view_unit.day_width

    @property
    def total_width(self) -> float:
        # Shifted bars and the today line may reach past the last header column.
        return (self.total_days + self.display_offset_days) * self.day_width

    @property
    def header_height(self) -> int:
        return self.view_unit.header_height

    @property
    def rows(self) -> list[HierarchicalRow]:
        return [bar.row for bar in self.bars]

    @property
    def total_height(self) -> float:
        return self.header_height + len(self.bars) * self.row_height
