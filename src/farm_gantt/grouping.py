from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, List

from .models import HierarchicalRow, Priority, Task, TaskStatus, Vegetable, VegetableGroup, WorkReport

logger = logging.getLogger(__name__)

ALL = "all"

_KATAKANA_START = 0x30A1
_KATAKANA_END = 0x30F6
_KANA_SHIFT = 0x60


@dataclass(frozen=True)
class TaskFilters:
    """Active filter selections; None or "all" leaves the task list untouched."""

    vegetable_id: str | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None
    search: str | None = None

    @property
    def vegetable(self) -> str | None:
        if self.vegetable_id in (None, "", ALL):
            return None
        return self.vegetable_id

    def accepts(self, task: Task) -> bool:
        if self.vegetable is not None and task.vegetable.id != self.vegetable:
            return False
        if self.priority is not None and task.priority is not self.priority:
            return False
        if self.status is not None and task.status is not self.status:
            return False
        if self.search and self.search.casefold() not in task.name.casefold():
            return False
        return True


def filter_tasks(tasks: Iterable[Task], filters: TaskFilters | None = None) -> list[Task]:
    if filters is None:
        return list(tasks)
    return [task for task in tasks if filters.accepts(task)]


def collation_key(text: str) -> tuple[str, str]:
    """
    Sort key approximating Japanese collation.

    Width variants are folded, katakana sorts with the matching hiragana and
    Latin letters compare case-insensitively; the raw text breaks ties.
    """

    folded = unicodedata.normalize("NFKC", text)
    chars = []
    for ch in folded:
        code = ord(ch)
        if _KATAKANA_START <= code <= _KATAKANA_END:
            ch = chr(code - _KANA_SHIFT)
        chars.append(ch)
    return "".join(chars).casefold(), text


class ExpansionState:
    """
    Expanded flags keyed by vegetable id.

    Every vegetable is expanded until the user collapses it, including
    vegetables that only show up in a later load; only the collapsed ids are
    stored, so toggles survive re-filtering and reloads within a session.
    """

    def __init__(self, collapsed: Iterable[str] | None = None) -> None:
        self._collapsed: set[str] = set(collapsed or ())
        self._known: set[str] = set(self._collapsed)

    def seed(self, vegetable_ids: Iterable[str]) -> int:
        """Register loaded vegetables; return how many were seen for the first time."""
        new_ids = set(vegetable_ids) - self._known
        self._known |= new_ids
        return len(new_ids)

    def is_expanded(self, vegetable_id: str) -> bool:
        return vegetable_id not in self._collapsed

    def toggle(self, vegetable_id: str) -> bool:
        """Flip one vegetable; return its new expanded flag."""
        self._known.add(vegetable_id)
        if vegetable_id in self._collapsed:
            self._collapsed.discard(vegetable_id)
            return True
        self._collapsed.add(vegetable_id)
        return False

    def expand(self, vegetable_id: str) -> None:
        self._known.add(vegetable_id)
        self._collapsed.discard(vegetable_id)

    def collapse(self, vegetable_id: str) -> None:
        self._known.add(vegetable_id)
        self._collapsed.add(vegetable_id)

    def expand_all(self) -> None:
        self._collapsed.clear()

    def collapse_all(self, vegetable_ids: Iterable[str] | None = None) -> None:
        ids = set(vegetable_ids) if vegetable_ids is not None else set(self._known)
        self._known |= ids
        self._collapsed |= ids

    def __contains__(self, vegetable_id: object) -> bool:
        return vegetable_id not in self._collapsed

    def __iter__(self):
        return iter(sorted(self._known - self._collapsed))


def build_groups(
    tasks: Iterable[Task],
    reports: Iterable[WorkReport] = (),
    filters: TaskFilters | None = None,
    expansion: ExpansionState | None = None,
) -> list[VegetableGroup]:
    """
    Group filtered tasks by vegetable and attach that vegetable's reports.

    Groups exist only for vegetables with at least one surviving task; reports
    for any other vegetable are dropped. Groups are sorted by vegetable name.
    """

    filtered = filter_tasks(tasks, filters)
    groups: dict[str, VegetableGroup] = {}
    for task in filtered:
        group = groups.get(task.vegetable.id)
        if group is None:
            expanded = True if expansion is None else expansion.is_expanded(task.vegetable.id)
            group = VegetableGroup(vegetable=task.vegetable, expanded=expanded)
            groups[task.vegetable.id] = group
        group.tasks.append(task)

    only_vegetable = filters.vegetable if filters is not None else None
    for report in reports:
        if only_vegetable is not None and report.vegetable_id != only_vegetable:
            continue
        group = groups.get(report.vegetable_id)
        if group is None:
            logger.debug("dropping work report %s: vegetable %s has no tasks", report.id, report.vegetable_id)
            continue
        group.reports.append(report)

    return sorted(groups.values(), key=lambda g: collation_key(g.vegetable.name))


def flatten_rows(groups: Iterable[VegetableGroup]) -> list[HierarchicalRow]:
    """
    Convert vegetable groups into a flat list of render rows with indentation.

    Each group emits its heading first; task rows follow in input order only
    when the group is expanded.
    """

    rows: List[HierarchicalRow] = []
    order = 0

    for group in groups:
        rows.append(
            HierarchicalRow(
                order=order,
                indent=0,
                kind="vegetable",
                vegetable=group.vegetable,
                name=group.vegetable.name,
                group=group,
            )
        )
        order += 1
        if not group.expanded:
            continue
        for task in group.tasks:
            rows.append(
                HierarchicalRow(
                    order=order,
                    indent=1,
                    kind="task",
                    vegetable=task.vegetable,
                    name=task.name,
                    group=group,
                    task=task,
                )
            )
            order += 1

    return rows


def vegetables_from_tasks(tasks: Iterable[Task]) -> list[Vegetable]:
    """Distinct vegetables in first-seen order."""
    seen: dict[str, Vegetable] = {}
    for task in tasks:
        seen.setdefault(task.vegetable.id, task.vegetable)
    return list(seen.values())
