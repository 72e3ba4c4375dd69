"""Plain-text overlays for numeric chart labels.

Vector-graphic text often rasterizes with the wrong fill or washed-out
anti-aliasing in headless capture. Every numeric label found inside a vector
graphic gets a positioned plain-text twin with an explicit dark colour, so
the number survives into the bitmap. Category names (axis ticks like
"Article") are left alone to avoid double-rendering them.
"""

from __future__ import annotations

import logging
import re

from models import Box
from visual import VisualNode, parse_px, vector_text_nodes

LOGGER = logging.getLogger(__name__)

NUMERIC_LABEL_RE = re.compile(r"^[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")
OVERLAY_COLOR = "#222"
OVERLAY_MARKER = "numeric-label"


def is_numeric_label(text: str | None) -> bool:
    return bool(text) and NUMERIC_LABEL_RE.match(text.strip()) is not None


def _overlay_for(label: VisualNode, origin: Box) -> VisualNode | None:
    box = label.box
    if box is None:
        return None
    left = box.x - origin.x
    top = box.y - origin.y
    font_size = label.style.get("font-size") or f"{max(box.height, 1.0):g}px"
    font_family = label.style.get("font-family", "Arial, Helvetica, sans-serif")
    return VisualNode(
        tag="div",
        attrs={"data-overlay": OVERLAY_MARKER},
        style={
            "position": "absolute",
            "left": f"{left:g}px",
            "top": f"{top:g}px",
            "font-size": f"{parse_px(font_size, box.height):g}px",
            "font-family": font_family,
            "color": OVERLAY_COLOR,
            "white-space": "nowrap",
            "pointer-events": "none",
        },
        text=label.text.strip(),
        box=box,
    )


def project_numeric_labels(clone: VisualNode) -> int:
    """Append an overlay node to ``clone`` for every numeric vector label.

    Positions are relative to the clone's own origin. Returns the number of
    overlays appended.
    """
    origin = clone.box or Box(0.0, 0.0, 0.0, 0.0)
    overlays = []
    for label in vector_text_nodes(clone):
        if not is_numeric_label(label.text):
            continue
        overlay = _overlay_for(label, origin)
        if overlay is not None:
            overlays.append(overlay)

    clone.children.extend(overlays)
    LOGGER.info("overlay: projected %s numeric labels", len(overlays))
    return len(overlays)
