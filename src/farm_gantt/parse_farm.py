from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from .models import AssignedUser, Priority, Task, TaskStatus, Vegetable, ViewUnit, WorkReport, WorkType

logger = logging.getLogger(__name__)


class FarmDataError(Exception):
    """Raised when the farm document is structurally invalid."""


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[0].vegetable."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


@dataclass
class ChartSettings:
    """Optional `chart:` block; every field may be overridden from the command line."""

    start_date: str | None = None
    end_date: str | None = None
    view_unit: ViewUnit = ViewUnit.DAY
    period: str | None = None
    vegetable: str | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None
    search: str | None = None
    collapsed: list[str] = field(default_factory=list)


@dataclass
class FarmData:
    vegetables: list[Vegetable] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    work_reports: list[WorkReport] = field(default_factory=list)
    chart: ChartSettings = field(default_factory=ChartSettings)


def load_farm(path: str) -> FarmData:
    """Load vegetables, tasks and work reports from a YAML (or JSON) file."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_farm(raw)


def parse_farm(data: Any) -> FarmData:
    path = _Path()
    if not isinstance(data, dict):
        raise FarmDataError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"vegetables", "tasks", "work_reports", "chart"}, path)

    vegetables = [
        _parse_vegetable(raw, path.child(f"vegetables[{idx}]"))
        for idx, raw in enumerate(_optional_list(data, "vegetables", path))
    ]

    tasks_raw = data.get("tasks")
    if tasks_raw is None:
        raise FarmDataError(f"{path}: missing required field 'tasks'")
    if not isinstance(tasks_raw, list):
        raise FarmDataError(f"{path}.tasks: expected list")
    ids: set[str] = set()
    tasks = [_parse_task(raw, path.child(f"tasks[{idx}]"), ids) for idx, raw in enumerate(tasks_raw)]

    report_ids: set[str] = set()
    reports = [
        _parse_report(raw, path.child(f"work_reports[{idx}]"), report_ids)
        for idx, raw in enumerate(_optional_list(data, "work_reports", path))
    ]

    chart = _parse_chart(data.get("chart"), path.child("chart"))
    return FarmData(vegetables=vegetables, tasks=tasks, work_reports=reports, chart=chart)


def _parse_vegetable(data: Any, path: _Path) -> Vegetable:
    if not isinstance(data, dict):
        raise FarmDataError(f"{path}: expected mapping for vegetable")
    _assert_allowed_keys(data, {"id", "name", "variety", "status"}, path)
    return Vegetable(
        id=_require_id(data, "id", path),
        name=_require_str(data, "name", path),
        variety=_optional_str(data, "variety", path) or "",
        status=_optional_str(data, "status", path),
    )


def _parse_task(data: Any, path: _Path, ids: set[str]) -> Task:
    if not isinstance(data, dict):
        raise FarmDataError(f"{path}: expected mapping for task")

    _assert_allowed_keys(
        data,
        {"id", "name", "start", "end", "progress", "status", "priority", "vegetable", "assignedUser", "color"},
        path,
    )
    task_id = _require_id(data, "id", path)
    _register_id(task_id, path.child("id"), ids)

    progress = data.get("progress", 0)
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise FarmDataError(f"{path}.progress: expected integer")
    if not 0 <= progress <= 100:
        raise FarmDataError(f"{path}.progress: expected value between 0 and 100, got {progress}")

    assigned_raw = data.get("assignedUser")
    assigned_user = None
    if assigned_raw is not None:
        assigned_path = path.child("assignedUser")
        if not isinstance(assigned_raw, dict):
            raise FarmDataError(f"{assigned_path}: expected mapping")
        _assert_allowed_keys(assigned_raw, {"id", "name"}, assigned_path)
        assigned_user = AssignedUser(
            id=_require_id(assigned_raw, "id", assigned_path),
            name=_require_str(assigned_raw, "name", assigned_path),
        )

    return Task(
        id=task_id,
        name=_require_str(data, "name", path),
        start=_date_text(_require_value(data, "start", path), path.child("start")),
        end=_date_text(_require_value(data, "end", path), path.child("end")),
        vegetable=_parse_vegetable(_require_value(data, "vegetable", path), path.child("vegetable")),
        progress=progress,
        status=_parse_enum(TaskStatus, data.get("status", "pending"), path.child("status")),
        priority=_parse_enum(Priority, data.get("priority", "medium"), path.child("priority")),
        assigned_user=assigned_user,
        color=_optional_str(data, "color", path),
    )


def _parse_report(data: Any, path: _Path, ids: set[str]) -> WorkReport:
    if not isinstance(data, dict):
        raise FarmDataError(f"{path}: expected mapping for work report")

    _assert_allowed_keys(
        data,
        {"id", "work_date", "work_type", "vegetable_id", "work_notes", "harvest_amount", "expected_revenue"},
        path,
    )
    report_id = _require_id(data, "id", path)
    _register_id(report_id, path.child("id"), ids)

    work_type_raw = data.get("work_type", "other")
    try:
        work_type = WorkType.from_code(str(work_type_raw))
    except ValueError:
        logger.warning("%s: unknown work_type %r, treating as 'other'", path.child("work_type"), work_type_raw)
        work_type = WorkType.OTHER

    return WorkReport(
        id=report_id,
        work_date=_date_text(_require_value(data, "work_date", path), path.child("work_date")),
        vegetable_id=_require_id(data, "vegetable_id", path),
        work_type=work_type,
        work_notes=_optional_str(data, "work_notes", path),
        harvest_amount=_optional_number(data, "harvest_amount", path),
        expected_revenue=_optional_number(data, "expected_revenue", path),
    )


def _parse_chart(data: Any, path: _Path) -> ChartSettings:
    if data is None:
        return ChartSettings()
    if not isinstance(data, dict):
        raise FarmDataError(f"{path}: expected mapping for chart settings")
    _assert_allowed_keys(
        data,
        {"start_date", "end_date", "view_unit", "period", "vegetable", "priority", "status", "search", "collapsed"},
        path,
    )

    collapsed_raw = data.get("collapsed") or []
    if not isinstance(collapsed_raw, list):
        raise FarmDataError(f"{path}.collapsed: expected list of vegetable ids")

    settings = ChartSettings(
        start_date=_optional_date_text(data, "start_date", path),
        end_date=_optional_date_text(data, "end_date", path),
        view_unit=_parse_enum(ViewUnit, data.get("view_unit", "day"), path.child("view_unit")),
        period=_optional_str(data, "period", path),
        vegetable=_optional_id(data, "vegetable", path),
        search=_optional_str(data, "search", path),
        collapsed=[str(item) for item in collapsed_raw],
    )
    if data.get("priority") not in (None, "all"):
        settings.priority = _parse_enum(Priority, data["priority"], path.child("priority"))
    if data.get("status") not in (None, "all"):
        settings.status = _parse_enum(TaskStatus, data["status"], path.child("status"))
    return settings


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise FarmDataError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise FarmDataError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_id(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if isinstance(value, bool) or not isinstance(value, (str, int)) or str(value).strip() == "":
        raise FarmDataError(f"{path.child(key)}: expected string or integer id")
    return str(value)


def _optional_id(data: dict[str, Any], key: str, path: _Path) -> str | None:
    if data.get(key) is None:
        return None
    return _require_id(data, key, path)


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise FarmDataError(f"{path.child(key)}: expected string")
    return value


def _optional_number(data: dict[str, Any], key: str, path: _Path) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FarmDataError(f"{path.child(key)}: expected number")
    return value


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise FarmDataError(f"{path}.{key}: expected list")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise FarmDataError(f"{path}: missing required field '{key}'")
    return data[key]


def _date_text(value: Any, path: _Path) -> str:
    """
    Keep dates as text for the layout engine's own normalization.

    Unquoted YAML dates arrive as `date` objects and are turned back into ISO
    strings; unreadable strings are accepted here and skipped at layout time.
    """

    if isinstance(value, _dt.datetime):
        return value.date().isoformat()
    if isinstance(value, _dt.date):
        return value.isoformat()
    if not isinstance(value, str):
        raise FarmDataError(f"{path}: expected YYYY-MM-DD string")
    return value


def _optional_date_text(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    return _date_text(value, path.child(key))


def _parse_enum(enum_cls, value: Any, path: _Path):
    if not isinstance(value, str):
        raise FarmDataError(f"{path}: expected string")
    try:
        return enum_cls.from_code(value)
    except ValueError as exc:
        raise FarmDataError(f"{path}: {exc}") from exc


def _register_id(value: str, path: _Path, ids: set[str]) -> None:
    if value in ids:
        raise FarmDataError(f"{path}: duplicate id '{value}'")
    ids.add(value)
