from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, TextIO

from .models import Task

CSV_HEADERS = ("タスク名", "野菜", "担当者", "開始日", "終了日", "進捗率", "ステータス", "優先度")
UNASSIGNED_LABEL = "未割当"


def task_record(task: Task) -> tuple[str, ...]:
    return (
        task.name,
        task.vegetable.name,
        task.assigned_user.name if task.assigned_user else UNASSIGNED_LABEL,
        task.start,
        task.end,
        f"{task.progress}%",
        task.status.label,
        task.priority.label,
    )


def export_tasks_csv(tasks: Iterable[Task], stream: TextIO) -> int:
    """Write tasks as fully quoted CSV rows; return the number of task rows written."""
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    count = 0
    for task in tasks:
        writer.writerow(task_record(task))
        count += 1
    return count


def write_tasks_csv(tasks: Iterable[Task], out_path: str) -> int:
    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # BOM so spreadsheet tools pick up UTF-8 for the Japanese headers.
    with path.open("w", encoding="utf-8-sig", newline="") as fh:
        return export_tasks_csv(tasks, fh)
