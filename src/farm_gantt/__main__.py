from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from pathlib import Path

import yaml

from .chart import GanttChart
from .dates import VIEW_PERIOD_MONTHS, InvalidDate, normalize_date, period_range, to_iso
from .dates import today as current_day
from .export import write_tasks_csv
from .geometry import ViewConfig
from .grouping import TaskFilters
from .models import Priority, TaskStatus, ViewUnit
from .parse_farm import ChartSettings, FarmData, FarmDataError, load_farm
from .render_gantt import render_gantt

logger = logging.getLogger("farm_gantt")


def _parse_date(value: str) -> str:
    try:
        return to_iso(normalize_date(value))
    except InvalidDate as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Farm task Gantt chart",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("farm", help="Path to farm YAML or JSON (vegetables, tasks, work_reports)")
    parser.add_argument("--out", default="output/farm_gantt.svg", help="Output SVG path")
    parser.add_argument("--csv", dest="csv_out", help="Also export the filtered tasks to this CSV path")
    parser.add_argument("--title", default="栽培野菜管理", help="Chart title")
    parser.add_argument("--start-date", type=_parse_date, help="Chart start date (YYYY-MM-DD)")
    parser.add_argument("--end-date", type=_parse_date, help="Chart end date (YYYY-MM-DD)")
    parser.add_argument("--period", choices=sorted(VIEW_PERIOD_MONTHS), help="Chart window around today")
    parser.add_argument("--view-unit", choices=[unit.code for unit in ViewUnit], help="Timeline zoom level")
    parser.add_argument("--vegetable", help="Only show tasks for this vegetable id ('all' for every vegetable)")
    parser.add_argument("--priority", choices=["all"] + [p.code for p in Priority], help="Priority filter")
    parser.add_argument("--status", choices=["all"] + [s.code for s in TaskStatus], help="Status filter")
    parser.add_argument("--search", help="Only show tasks whose name contains this text")
    parser.add_argument("--collapse", nargs="*", default=None, metavar="VEGETABLE_ID", help="Collapse these vegetable groups")
    parser.add_argument("--today", type=_parse_date, help="Override today's date (YYYY-MM-DD)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=True,
        help="Best-effort open the output file after rendering",
    )
    parser.add_argument(
        "--no-view",
        dest="view",
        action="store_false",
        help="Do not open the output file after rendering",
    )
    return parser


def _merge_settings(settings: ChartSettings, args: argparse.Namespace) -> ChartSettings:
    """Command-line flags override the document's `chart:` block."""
    if args.start_date is not None:
        settings.start_date = args.start_date
    if args.end_date is not None:
        settings.end_date = args.end_date
    if args.period is not None:
        settings.period = args.period
    if args.view_unit is not None:
        settings.view_unit = ViewUnit.from_code(args.view_unit)
    if args.vegetable is not None:
        settings.vegetable = args.vegetable
    if args.priority is not None:
        settings.priority = None if args.priority == "all" else Priority.from_code(args.priority)
    if args.status is not None:
        settings.status = None if args.status == "all" else TaskStatus.from_code(args.status)
    if args.search is not None:
        settings.search = args.search
    if args.collapse is not None:
        settings.collapsed = list(args.collapse)
    return settings


def build_chart(farm: FarmData, settings: ChartSettings, today=None) -> GanttChart:
    start_date, end_date = settings.start_date, settings.end_date
    if settings.period and not (start_date or end_date):
        period_start, period_end = period_range(today or current_day(), settings.period)
        start_date, end_date = to_iso(period_start), to_iso(period_end)

    chart = GanttChart(
        farm.tasks,
        farm.work_reports,
        vegetables=farm.vegetables or None,
        config=ViewConfig(start_date=start_date, end_date=end_date, view_unit=settings.view_unit),
        filters=TaskFilters(
            vegetable_id=settings.vegetable,
            priority=settings.priority,
            status=settings.status,
            search=settings.search,
        ),
    )
    for vegetable_id in settings.collapsed:
        chart.expansion.collapse(vegetable_id)
    return chart


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    farm_path = Path(args.farm)

    try:
        farm = load_farm(str(farm_path))
    except (yaml.YAMLError, FarmDataError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: farm file not found: {farm_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading farm data: {exc}", file=sys.stderr)
        return 1

    today = normalize_date(args.today) if args.today else current_day()
    settings = _merge_settings(farm.chart, args)
    try:
        chart = build_chart(farm, settings, today=today)
        geometry = chart.geometry(today=today)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    logger.info(
        "laid out %d rows and %d work reports over %d days",
        len(geometry.bars),
        len(geometry.markers),
        geometry.total_days,
    )

    if args.csv_out:
        written = write_tasks_csv(chart.filtered_tasks, args.csv_out)
        logger.info("exported %d tasks to %s", written, args.csv_out)

    if not geometry.bars:
        print("Error: no tasks to display", file=sys.stderr)
        return 2

    try:
        render_gantt(geometry, out_path=args.out, title=args.title)
    except Exception as exc:
        print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
        return 1

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except webbrowser.Error:
            logger.debug("could not open %s in a browser", args.out)

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
