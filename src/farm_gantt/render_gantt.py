from __future__ import annotations

from importlib import metadata
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.pyplot as plt
from matplotlib.patches import Circle, Rectangle

from .models import ChartGeometry, ColumnHeader, RowBar

# Pixel layout of the header bands and label gutter.
YEAR_MONTH_BAND = 32
DAY_BAND = 28
WEEKDAY_BAND = 24
LABEL_GUTTER = 240
INDENT_PX = 16
BAR_FILL = 0.6  # bar height as a fraction of row height
MARKER_RADIUS = 7
DPI = 96
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 9 * FONT_SCALE
HEADER_FONT = 8 * FONT_SCALE
FOOTER_FONT = 7 * FONT_SCALE
TODAY_COLOR = "#dc2626"
WEEKEND_COLOR = "#fef2f2"
GRID_COLOR = "#e5e7eb"


def render_gantt(geometry: ChartGeometry, out_path: str, title: str = "") -> None:
    """
    Render a static SVG Gantt chart of `geometry` to `out_path`.

    - Works in the geometry's pixel space; y grows downward from the header.
    - Vegetable headings are bold with a full-width summary bar.
    - Task bars show progress as a darker fill; work reports are dots.
    """

    if not geometry.bars:
        raise ValueError("geometry has no rows to render")

    total_width = max(geometry.total_width, 1)
    total_height = geometry.total_height
    fig_width = (LABEL_GUTTER + total_width) / DPI
    fig_height = max(2.0, (total_height + 60) / DPI)

    fig = plt.figure(figsize=(fig_width, fig_height), dpi=DPI)
    gs = fig.add_gridspec(
        1, 2, width_ratios=[LABEL_GUTTER, total_width], wspace=0.0, left=0.0, right=1.0, top=0.92, bottom=0.04
    )
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_xlim(0, total_width)
    ax.set_ylim(total_height, 0)
    ax.axis("off")
    label_ax.set_xlim(0, LABEL_GUTTER)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=0.985)
    footer = f"{geometry.chart_start.format('YYYY/MM/DD')} - {geometry.chart_end.format('YYYY/MM/DD')} · farm-gantt v{_tool_version()}"
    fig.text(0.99, 0.005, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    _draw_headers(ax, geometry)
    _draw_grid(ax, geometry)
    for bar in geometry.bars:
        _draw_row(ax, label_ax, geometry, bar)
    _draw_markers(ax, geometry)
    _draw_today(ax, geometry)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg")
    plt.close(fig)


def _draw_headers(ax: plt.Axes, geometry: ChartGeometry) -> None:
    _draw_band(ax, geometry.headers.year_months, 0, YEAR_MONTH_BAND, "#dbeafe", bold=True)
    _draw_band(ax, geometry.headers.days, YEAR_MONTH_BAND, DAY_BAND, "#f9fafb")
    if geometry.headers.weekdays:
        _draw_band(ax, geometry.headers.weekdays, YEAR_MONTH_BAND + DAY_BAND, WEEKDAY_BAND, "#ffffff")
    # Trailing display-offset columns have no date; keep the header band closed.
    columns_end = geometry.total_days * geometry.day_width
    if geometry.total_width > columns_end:
        ax.add_patch(
            Rectangle(
                (columns_end, 0),
                geometry.total_width - columns_end,
                geometry.header_height,
                facecolor="#f9fafb",
                edgecolor=GRID_COLOR,
                linewidth=0.5,
            )
        )


def _draw_band(ax: plt.Axes, headers: list[ColumnHeader], top: float, height: float, face: str, bold: bool = False) -> None:
    for header in headers:
        color = WEEKEND_COLOR if header.is_weekend else face
        ax.add_patch(
            Rectangle((header.position, top), header.width, height, facecolor=color, edgecolor=GRID_COLOR, linewidth=0.5)
        )
        ax.text(
            header.position + header.width / 2,
            top + height / 2,
            header.label,
            ha="center",
            va="center",
            fontsize=HEADER_FONT,
            fontweight="bold" if bold else "normal",
            color="#b91c1c" if header.is_weekend else "#374151",
        )


def _draw_grid(ax: plt.Axes, geometry: ChartGeometry) -> None:
    top = geometry.header_height
    bottom = geometry.total_height
    for header in geometry.headers.days:
        if geometry.headers.weekdays and header.is_weekend:
            ax.add_patch(
                Rectangle((header.position, top), header.width, bottom - top, facecolor=WEEKEND_COLOR, linewidth=0)
            )
        ax.plot([header.position, header.position], [top, bottom], color=GRID_COLOR, linewidth=0.5, zorder=1)
    for bar in geometry.bars:
        y = top + (bar.index + 1) * geometry.row_height
        ax.plot([0, geometry.total_width], [y, y], color=GRID_COLOR, linewidth=0.5, zorder=1)


def _draw_row(ax: plt.Axes, label_ax: plt.Axes, geometry: ChartGeometry, bar: RowBar) -> None:
    row_top = geometry.header_height + bar.index * geometry.row_height
    center = row_top + geometry.row_height / 2
    bar_height = geometry.row_height * BAR_FILL
    is_heading = bar.row.task is None

    label = bar.row.name
    if is_heading and bar.row.group is not None:
        marker = "▼" if bar.row.group.expanded else "▶"
        label = f"{marker} {label} ({bar.row.group.task_count})"
    label_ax.text(
        8 + bar.row.indent * INDENT_PX,
        center,
        label,
        ha="left",
        va="center",
        fontsize=LABEL_FONT,
        fontweight="bold" if is_heading else "normal",
        transform=label_ax.transData,
    )

    ax.add_patch(
        Rectangle(
            (bar.left, center - bar_height / 2),
            bar.width,
            bar_height,
            facecolor=bar.color,
            edgecolor="black" if not is_heading else "none",
            linewidth=0.5,
            alpha=0.35 if is_heading else 0.6,
            zorder=2,
        )
    )
    progress_width = bar.width * bar.row.progress / 100
    if progress_width > 0:
        ax.add_patch(
            Rectangle(
                (bar.left, center - bar_height / 2),
                progress_width,
                bar_height,
                facecolor=bar.color,
                linewidth=0,
                zorder=3,
            )
        )
    ax.text(bar.left + 4, center, f"{bar.row.progress}%", ha="left", va="center", fontsize=HEADER_FONT, zorder=4)


def _draw_markers(ax: plt.Axes, geometry: ChartGeometry) -> None:
    for marker in geometry.markers:
        ax.add_patch(
            Circle((marker.x, marker.y), MARKER_RADIUS, facecolor=marker.color, edgecolor="white", linewidth=1.5, zorder=5)
        )


def _draw_today(ax: plt.Axes, geometry: ChartGeometry) -> None:
    if geometry.today is None:
        return
    x = geometry.today.x
    ax.plot([x, x], [geometry.header_height, geometry.total_height], color=TODAY_COLOR, linewidth=1.5, zorder=6)
    ax.text(
        x + 2,
        geometry.header_height + 2,
        f"今日 {geometry.today.date.format('MM/DD')}",
        ha="left",
        va="top",
        fontsize=HEADER_FONT,
        color=TODAY_COLOR,
        zorder=6,
    )


def _tool_version() -> str:
    try:
        return metadata.version("farm-gantt")
    except metadata.PackageNotFoundError:
        return "0.0.0"
