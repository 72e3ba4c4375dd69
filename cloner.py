"""Off-screen copy of a visual subtree with its resolved presentation baked in.

Moving a subtree into a detached capture context loses whatever styling it
inherited from its surroundings (global style sheets, ancestor stacking
contexts, viewport units). The copy produced here carries every resolved
property explicitly, so it renders the same wherever it is attached.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import NamedTuple

from visual import VECTOR_ROOT_TAG, VECTOR_TEXT_TAGS, RenderSurface, VisualNode

LOGGER = logging.getLogger(__name__)


class CloneResult(NamedTuple):
    root: VisualNode
    copied: int
    skipped: int


def _shallow_copy(node: VisualNode) -> VisualNode:
    return VisualNode(
        tag=node.tag,
        attrs=dict(node.attrs),
        style=dict(node.style),
        text=node.text,
        box=node.box,
    )


def clone_with_presentation(surface: RenderSurface, source: VisualNode) -> CloneResult:
    """Zip over source and copy breadth-first, returning a brand-new tree.

    The source tree is never touched. Each copied node receives the surface's
    full resolved style and layout box; text leaves inside vector graphics
    also get their resolved foreground as an explicit ``fill`` attribute.
    A node whose presentation cannot be resolved keeps its own declarations
    and is counted in ``skipped``; the clone is still returned.
    """
    root = _shallow_copy(source)
    # (source node, its copy, inside a vector graphic)
    queue: deque[tuple[VisualNode, VisualNode, bool]] = deque([(source, root, source.tag == VECTOR_ROOT_TAG)])
    copied = 0
    skipped = 0

    while queue:
        src, dst, in_vector = queue.popleft()
        try:
            resolved = dict(surface.computed_style(src))
            dst.style = resolved
            dst.box = surface.bounding_box(src)
            if in_vector and src.tag in VECTOR_TEXT_TAGS:
                foreground = resolved.get("fill") or resolved.get("color")
                if foreground:
                    dst.attrs["fill"] = foreground
            copied += 1
        except Exception as exc:  # partial fidelity is acceptable per node
            skipped += 1
            LOGGER.debug("clone: presentation copy skipped for <%s>: %s", src.tag, exc)

        for child in src.children:
            child_copy = dst.append(_shallow_copy(child))
            queue.append((child, child_copy, in_vector or child.tag == VECTOR_ROOT_TAG))

    if skipped:
        LOGGER.warning("clone: copied=%s skipped=%s", copied, skipped)
    else:
        LOGGER.info("clone: copied=%s", copied)
    return CloneResult(root=root, copied=copied, skipped=skipped)
