"""Capture a prepared clone into one bitmap.

The clone is attached to a rendering context parked far outside the visible
viewport (hidden elements may not lay out at all), given an explicit width,
left to settle, captured, and then always detached.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Protocol

from PIL import Image, ImageColor, ImageDraw, ImageFont

from errors import CaptureFailure, ReportingError
from models import Box
from visual import VisualNode, parse_px, walk, walk_preorder

LOGGER = logging.getLogger(__name__)

OFFSCREEN_OFFSET_PX = -12000
VIEWPORT_GUTTER_PX = 40
BACKGROUND = "#ffffff"


class CaptureBackend(Protocol):
    def attach(self, root: VisualNode, left: float, top: float, width: float) -> Any: ...

    def capture(self, handle: Any, scale: float) -> Image.Image: ...

    def detach(self, handle: Any) -> None: ...


def natural_width(root: VisualNode) -> float:
    """Widest extent of the tree measured from the root's left edge."""
    origin = root.box or Box(0.0, 0.0, 0.0, 0.0)
    widest = origin.width
    for node in walk(root):
        if node.box is not None:
            widest = max(widest, node.box.x + node.box.width - origin.x)
    return widest


def natural_height(root: VisualNode) -> float:
    origin = root.box or Box(0.0, 0.0, 0.0, 0.0)
    tallest = origin.height
    for node in walk(root):
        if node.box is not None:
            tallest = max(tallest, node.box.y + node.box.height - origin.y)
    return tallest


class Rasterizer:
    """Attach, settle, capture, detach."""

    def __init__(
        self,
        backend: CaptureBackend,
        scale: float = 2.0,
        settle_seconds: float = 0.5,
        viewport_width: int = 1280,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if scale <= 0:
            raise ValueError("scale must be positive")
        self.backend = backend
        self.scale = scale
        self.settle_seconds = settle_seconds
        self.viewport_width = viewport_width
        self._sleep = sleep

    def capture(self, clone: VisualNode) -> Image.Image:
        width = max(natural_width(clone), self.viewport_width - VIEWPORT_GUTTER_PX)
        handle = None
        try:
            handle = self.backend.attach(clone, OFFSCREEN_OFFSET_PX, OFFSCREEN_OFFSET_PX, width)
            if self.settle_seconds > 0:
                self._sleep(self.settle_seconds)
            bitmap = self.backend.capture(handle, self.scale)
        except ReportingError:
            raise
        except Exception as exc:
            raise CaptureFailure(f"Rasterization failed: {exc}") from exc
        finally:
            if handle is not None:
                try:
                    self.backend.detach(handle)
                except Exception as exc:  # a failed detach must not mask the capture result
                    LOGGER.warning("rasterize: detach failed: %s", exc)

        LOGGER.info(
            "rasterize: width=%s scale=%s bitmap=%sx%s",
            round(width),
            self.scale,
            bitmap.width,
            bitmap.height,
        )
        return bitmap


# ---------------------------------------------------------------------------
# Pillow backend
# ---------------------------------------------------------------------------


@dataclass
class _Attachment:
    root: VisualNode
    left: float
    top: float
    width: float


class PillowCaptureBackend:
    """Paints a visual tree with Pillow: backgrounds, borders, shapes and text."""

    def __init__(self) -> None:
        self.attached: list[_Attachment] = []

    def attach(self, root: VisualNode, left: float, top: float, width: float) -> _Attachment:
        handle = _Attachment(root=root, left=left, top=top, width=width)
        self.attached.append(handle)
        return handle

    def detach(self, handle: _Attachment) -> None:
        if handle in self.attached:
            self.attached.remove(handle)

    def capture(self, handle: _Attachment, scale: float) -> Image.Image:
        if handle not in self.attached:
            raise CaptureFailure("capture target is not attached")

        root = handle.root
        origin = root.box or Box(0.0, 0.0, 0.0, 0.0)
        width_px = max(1, math.ceil(handle.width * scale))
        height_px = max(1, math.ceil(natural_height(root) * scale))
        image = Image.new("RGB", (width_px, height_px), _color(root.style.get("background-color")) or BACKGROUND)
        draw = ImageDraw.Draw(image)

        for node in walk_preorder(root):
            if node.box is None:
                continue
            x0 = (node.box.x - origin.x) * scale
            y0 = (node.box.y - origin.y) * scale
            x1 = x0 + node.box.width * scale
            y1 = y0 + node.box.height * scale
            _paint_node(draw, node, (x0, y0, x1, y1), scale)

        return image


@lru_cache(maxsize=32)
def _font(size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _color(value: str | None) -> tuple[int, ...] | None:
    """Parse a CSS colour; None for missing, unparseable or fully transparent."""
    if not value or value.strip().lower() in {"none", "transparent"}:
        return None
    try:
        rgba = ImageColor.getcolor(value.strip(), "RGBA")
    except ValueError:
        return None
    if rgba[3] == 0:
        return None
    return rgba[:3]


def _paint_node(draw: ImageDraw.ImageDraw, node: VisualNode, rect: tuple[float, float, float, float], scale: float) -> None:
    x0, y0, x1, y1 = rect
    has_area = x1 > x0 and y1 > y0

    if has_area:
        if node.tag == "rect":
            fill = _color(node.attrs.get("fill") or node.style.get("fill"))
        else:
            fill = _color(node.style.get("background-color"))
        outline = _color(node.style.get("border-color"))
        if fill or outline:
            draw.rectangle((x0, y0, max(x0, x1 - 1), max(y0, y1 - 1)), fill=fill, outline=outline)

    if node.text and not node.children:
        color = (
            _color(node.attrs.get("fill"))
            or _color(node.style.get("color"))
            or _color(node.style.get("fill"))
            or (0, 0, 0)
        )
        size = max(1, round(parse_px(node.style.get("font-size"), 16.0) * scale))
        font = _font(size)
        draw.text((x0, y0), node.text, fill=color, font=font)
