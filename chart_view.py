"""Mount an aggregated series as a laid-out visual tree.

A deliberately small renderer: a header card with the filter summary and
timestamp, then one bar chart per metric. Every node gets its layout box up
front, so the tree can go straight through the capture pipeline via a
StaticSurface.
"""

from __future__ import annotations

from datetime import datetime

from models import Box, PeriodBucket
from visual import StaticSurface, VisualNode

PAGE_PADDING = 20.0
HEADER_HEIGHT = 70.0
SECTION_GAP = 16.0
SECTION_TITLE_HEIGHT = 30.0
CHART_HEIGHT = 320.0
AXIS_HEIGHT = 40.0
LABEL_HEIGHT = 14.0
PX_PER_PERIOD = 60.0
MIN_CHART_WIDTH = 900.0
RIGHT_PADDING = 60.0

CHARTS: list[tuple[str, str, str]] = [
    ("Publications Over Time", "publications", "#2f6fb2"),
    ("Unique Contributors", "unique_contributors", "#69a973"),
    ("Avg. Authors per Publication", "average_authors_per_publication", "#ff8a00"),
]


def chart_width(periods: int) -> float:
    return max(periods * PX_PER_PERIOD, MIN_CHART_WIDTH) + RIGHT_PADDING


def _format_value(value: float) -> str:
    if isinstance(value, float) and not value.is_integer():
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"


def _bar_chart(series: list[PeriodBucket], metric: str, color: str, x: float, y: float, width: float) -> VisualNode:
    svg = VisualNode(tag="svg", attrs={"class": "chart"}, box=Box(x, y, width, CHART_HEIGHT))
    plot_height = CHART_HEIGHT - AXIS_HEIGHT - LABEL_HEIGHT
    values = [float(getattr(bucket, metric)) for bucket in series]
    peak = max(values, default=0.0) or 1.0
    slot = (width - RIGHT_PADDING) / max(1, len(series))
    bar_width = max(4.0, slot * 0.6)

    svg.append(VisualNode(
        tag="rect",
        attrs={"fill": "#cccccc", "class": "axis"},
        box=Box(x, y + LABEL_HEIGHT + plot_height, width - RIGHT_PADDING, 1.0),
    ))

    for index, (bucket, value) in enumerate(zip(series, values)):
        left = x + index * slot + (slot - bar_width) / 2
        bar_height = plot_height * value / peak
        top = y + LABEL_HEIGHT + plot_height - bar_height
        svg.append(VisualNode(tag="rect", attrs={"fill": color}, box=Box(left, top, bar_width, bar_height)))
        if value:
            svg.append(VisualNode(
                tag="text",
                attrs={"class": "value-label"},
                style={"font-size": "12px", "fill": "#333"},
                text=_format_value(value),
                box=Box(left, top - LABEL_HEIGHT, slot, LABEL_HEIGHT),
            ))
        svg.append(VisualNode(
            tag="text",
            attrs={"class": "axis-tick"},
            style={"font-size": "12px", "fill": "#333"},
            text=str(bucket.period),
            box=Box(left, y + LABEL_HEIGHT + plot_height + 6, slot, LABEL_HEIGHT),
        ))
    return svg


def render_report(
    series: list[PeriodBucket],
    filters_line: str,
    generated_at: datetime | None = None,
    heading: str = "Yearly Publications",
) -> tuple[VisualNode, StaticSurface]:
    """Build the printable report tree for ``series`` and a surface over it."""
    width = chart_width(len(series)) + 2 * PAGE_PADDING
    inner = width - 2 * PAGE_PADDING
    root = VisualNode(tag="div", attrs={"class": "printable"}, style={"color": "#222"})

    y = PAGE_PADDING
    header = root.append(VisualNode(
        tag="div",
        attrs={"class": "report-header"},
        style={"background-color": "#f7f9fb"},
        box=Box(PAGE_PADDING, y, inner, HEADER_HEIGHT),
    ))
    header.append(VisualNode(
        tag="div",
        style={"font-size": "18px", "color": "#111"},
        text=heading,
        box=Box(PAGE_PADDING + 12, y + 10, inner / 2, 22),
    ))
    header.append(VisualNode(
        tag="div",
        style={"font-size": "13px", "color": "#444"},
        text=filters_line,
        box=Box(PAGE_PADDING + 12, y + 40, inner - 24, 16),
    ))
    stamp = (generated_at or datetime.now()).strftime("%b %d, %Y %H:%M")
    header.append(VisualNode(
        tag="div",
        style={"font-size": "12px", "color": "#333"},
        text=f"Generated {stamp}",
        box=Box(PAGE_PADDING + inner - 200, y + 10, 188, 16),
    ))
    y += HEADER_HEIGHT + SECTION_GAP

    for title, metric, color in CHARTS:
        section_height = SECTION_TITLE_HEIGHT + CHART_HEIGHT + 12
        section = root.append(VisualNode(
            tag="section",
            style={"background-color": "#ffffff", "border-color": "#e6e6e6"},
            box=Box(PAGE_PADDING, y, inner, section_height),
        ))
        section.append(VisualNode(
            tag="h3",
            style={"font-size": "16px"},
            text=title,
            box=Box(PAGE_PADDING + 12, y + 6, inner - 24, 20),
        ))
        section.append(_bar_chart(series, metric, color, PAGE_PADDING, y + SECTION_TITLE_HEIGHT, inner))
        y += section_height + SECTION_GAP

    root.box = Box(0.0, 0.0, width, y + PAGE_PADDING)
    return root, StaticSurface(root)
