"""Place page slices onto successive PDF pages."""

from __future__ import annotations

import io
import logging

from reportlab.lib.pagesizes import A4, landscape, legal, letter, portrait
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from errors import AssemblyFailure
from models import PageSlice

LOGGER = logging.getLogger(__name__)

PAGE_FORMATS: dict[str, tuple[float, float]] = {
    "a4": A4,
    "letter": letter,
    "legal": legal,
}
DEFAULT_MARGIN_PT = 18.0


def page_size(page_format: str = "A4", orientation: str = "landscape") -> tuple[float, float]:
    try:
        size = PAGE_FORMATS[page_format.strip().lower()]
    except KeyError:
        raise ValueError(f"Unsupported page format: {page_format}") from None
    if orientation.strip().lower() == "landscape":
        return landscape(size)
    if orientation.strip().lower() == "portrait":
        return portrait(size)
    raise ValueError(f"Unsupported orientation: {orientation}")


def assemble_document(
    slices: list[PageSlice],
    page_format: str = "A4",
    orientation: str = "landscape",
    margin: float = DEFAULT_MARGIN_PT,
    title: str | None = None,
) -> bytes:
    """Render one page per slice, each scaled to the page's content width.

    Slices are drawn from the top margin down, aspect ratio preserved, in the
    order given; that order must be strictly increasing by source row.
    """
    if not slices:
        raise AssemblyFailure("Nothing to assemble: slice list is empty")
    starts = [s.source_row_start for s in slices]
    if any(b <= a for a, b in zip(starts, starts[1:])):
        raise AssemblyFailure("Slices must be in increasing source row order")

    width, height = page_size(page_format, orientation)
    avail_width = width - 2 * margin

    buffer = io.BytesIO()
    try:
        pdf = canvas.Canvas(buffer, pagesize=(width, height))
        if title:
            pdf.setTitle(title)
        for page_slice in slices:
            image = page_slice.image
            fit = avail_width / image.width
            draw_height = image.height * fit
            pdf.drawImage(
                ImageReader(image),
                margin,
                height - margin - draw_height,
                width=avail_width,
                height=draw_height,
            )
            pdf.showPage()
        pdf.save()
    except Exception as exc:
        raise AssemblyFailure(f"PDF writer failed: {exc}") from exc

    LOGGER.info(
        "assemble: pages=%s format=%s orientation=%s bytes=%s",
        len(slices),
        page_format,
        orientation,
        buffer.getbuffer().nbytes,
    )
    return buffer.getvalue()
