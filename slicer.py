"""Split a tall bitmap into page-height slices with a bounded overlap.

Consecutive slices share a strip of ``overlap`` rows, so a row that would
sit exactly on a page boundary is also rendered with context on the next
page. The last slice always ends on the bitmap's bottom row.
"""

from __future__ import annotations

import logging
import math

from PIL import Image

from models import PageSlice

LOGGER = logging.getLogger(__name__)


def clamp_overlap(page_rows: int, overlap: int) -> int:
    """Never more than a quarter of the page, and never enough to stall."""
    return max(0, min(int(overlap), page_rows // 4))


def plan_slices(total_rows: int, page_rows: int, overlap: int) -> list[tuple[int, int]]:
    """Return (start, height) pairs covering [0, total_rows) in increasing order."""
    if page_rows <= 0:
        raise ValueError("page_rows must be positive")
    overlap = clamp_overlap(page_rows, overlap)

    plan: list[tuple[int, int]] = []
    position = 0
    while position < total_rows:
        remaining = total_rows - position
        height = min(page_rows, remaining)
        plan.append((position, height))
        if remaining <= page_rows:
            break
        position += max(1, height - overlap)
    return plan


def slice_bitmap(bitmap: Image.Image, page_rows: int, overlap: int) -> list[PageSlice]:
    slices = [
        PageSlice(start, height, bitmap.crop((0, start, bitmap.width, start + height)))
        for start, height in plan_slices(bitmap.height, page_rows, overlap)
    ]
    LOGGER.info(
        "slice: bitmap_height=%s page_rows=%s overlap=%s slices=%s",
        bitmap.height,
        page_rows,
        clamp_overlap(page_rows, overlap),
        len(slices),
    )
    return slices


def page_rows_for(page_size: tuple[float, float], margin: float, bitmap_width: int) -> int:
    """Content height of one page, in source pixels, at scale-to-fit width."""
    page_width, page_height = page_size
    avail_width = page_width - 2 * margin
    avail_height = page_height - 2 * margin
    if avail_width <= 0 or avail_height <= 0:
        raise ValueError("margin leaves no room for content")
    fit = avail_width / max(1, bitmap_width)
    return max(1, math.floor(avail_height / fit))


def overlap_rows_for(overlap_pt: float, page_size: tuple[float, float], margin: float, bitmap_width: int) -> int:
    """Convert a physical overlap into source rows at the same scale-to-fit factor."""
    fit = (page_size[0] - 2 * margin) / max(1, bitmap_width)
    return math.ceil(overlap_pt / fit) if fit > 0 else 0
