from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch, Polygon

from .schedule_models import FlatRenderRow

TIMELINE_PAD_DAYS = 7  # add breathing room before first and after last date
ROW_HEIGHT = 0.6
LOZENGE_HALF_WIDTH = 1.2  # days
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 9 * FONT_SCALE
TOP_MARGIN_FRAC = 0.85
TITLE_Y = 0.985


def render_gantt(
    rows: list[FlatRenderRow],
    out_path: str,
    title: str,
    min_date: dt.date | None = None,
    max_date: dt.date | None = None,
) -> None:
    """
    Render a static SVG milestone timeline to `out_path`.

    - Expects rows from a replanned schedule; undated milestones keep their label
      but get no lozenge.
    - Phase headings are bold; lozenges are coloured per phase.
    - Connectors run from each dated target to each dated milestone derived from it.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    min_date, max_date = _resolve_date_window(rows, min_date, max_date)
    phase_colors = _phase_colors(rows)

    span_days = (max_date - min_date).days + 1
    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0)
    fig_width = max(12.0, min(24.0, span_days / 7.0 * 0.5 + 6.0))
    fig = plt.figure(figsize=(fig_width, fig_height))
    # Left column for labels, right for the timeline.
    gs = fig.add_gridspec(1, 2, width_ratios=[1.2, 4.0], wspace=0.05, left=0.06, right=0.98, top=TOP_MARGIN_FRAC, bottom=0.1)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(
        mdates.date2num(min_date - dt.timedelta(days=TIMELINE_PAD_DAYS)),
        mdates.date2num(max_date + dt.timedelta(days=TIMELINE_PAD_DAYS)),
    )
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4)
    ax.set_yticks([])

    label_ax.set_ylim(-1, len(rows))
    label_ax.invert_yaxis()
    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer = f"release-scheduler v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    positions: dict[str, tuple[float, float]] = {}  # alias -> (x, y)

    for idx, row in enumerate(rows):
        y = idx
        text_weight = "bold" if row.node_type == "phase" else "normal"
        label_ax.text(
            0.98,
            y,
            row.name,
            ha="right",
            va="center",
            fontsize=LABEL_FONT,
            fontweight=text_weight,
            transform=label_ax.transData,
        )

        if row.node_type == "lozenge" and row.due_date:
            center_x = mdates.date2num(row.due_date)
            half_height = ROW_HEIGHT / 1.5
            diamond = [
                (center_x - LOZENGE_HALF_WIDTH, y),
                (center_x, y - half_height),
                (center_x + LOZENGE_HALF_WIDTH, y),
                (center_x, y + half_height),
            ]
            color = phase_colors.get(row.phase, "#666666")
            ax.add_patch(Polygon(diamond, closed=True, facecolor=color, edgecolor="black", zorder=3))
            ax.text(
                center_x + LOZENGE_HALF_WIDTH * 1.5,
                y,
                row.due_date.isoformat(),
                va="center",
                fontsize=TICK_FONT,
                alpha=0.8,
            )
            positions.setdefault(row.node_id, (center_x, y))

    _draw_relations(ax, rows, positions)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _phase_colors(rows: Iterable[FlatRenderRow]) -> dict[str, str]:
    phases: list[str] = []
    for row in rows:
        if row.node_type == "phase" and row.phase not in phases:
            phases.append(row.phase)
    palette = plt.get_cmap("tab10")
    return {name: matplotlib.colors.to_hex(palette(i % palette.N)) for i, name in enumerate(phases)}


def _resolve_date_window(
    rows: Iterable[FlatRenderRow], min_date: dt.date | None, max_date: dt.date | None
) -> tuple[dt.date, dt.date]:
    dates = [row.due_date for row in rows if row.due_date]
    if not dates and (min_date is None or max_date is None):
        raise ValueError("Cannot infer date window; no milestone has a due date")
    return min_date or min(dates), max_date or max(dates)


def _tool_version() -> str:
    try:
        return metadata.version("release-scheduler")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 365:
        return mdates.MonthLocator(interval=2), mdates.DateFormatter("%b %Y")
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")


def _draw_relations(
    ax: plt.Axes,
    rows: list[FlatRenderRow],
    positions: dict[str, tuple[float, float]],
) -> None:
    for row in rows:
        if row.node_type != "lozenge" or not row.depends_on:
            continue
        end = positions.get(row.node_id)
        if end is None:
            continue
        for target in row.depends_on:
            start = positions.get(target)
            if start is None:
                continue
            arrow = FancyArrowPatch(
                posA=start,
                posB=end,
                arrowstyle="-|>",
                connectionstyle="arc3,rad=0.2",
                mutation_scale=8.0,
                lw=0.9,
                color="#3a3a3a",
                shrinkA=4.0,
                shrinkB=4.0,
                zorder=2,
            )
            ax.add_patch(arrow)
