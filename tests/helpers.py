from farm_gantt.models import Priority, Task, TaskStatus, Vegetable, WorkReport, WorkType

TOMATO = Vegetable(id="v1", name="トマト", variety="桃太郎")
CUCUMBER = Vegetable(id="v2", name="きゅうり", variety="四葉")
EGGPLANT = Vegetable(id="v3", name="なす", variety="千両")


def make_task(task_id, start, end, vegetable=TOMATO, name=None, progress=0, priority=Priority.MEDIUM, status=TaskStatus.PENDING):
    return Task(
        id=task_id,
        name=name or task_id,
        start=start,
        end=end,
        vegetable=vegetable,
        progress=progress,
        priority=priority,
        status=status,
    )


def make_report(report_id, work_date, vegetable_id="v1", work_type=WorkType.OTHER):
    return WorkReport(id=report_id, work_date=work_date, vegetable_id=vegetable_id, work_type=work_type)
