"""Visual tree model and the rendering-surface boundary.

The capture pipeline never renders charts itself. It consumes whatever tree a
renderer has mounted, and asks a RenderSurface for the two things only a live
layout engine knows: the resolved presentation state of a node and its laid-out
box. Trees are plain VisualNode objects so every capture step can be exercised
without a browser.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Protocol

from models import Box

VECTOR_ROOT_TAG = "svg"
VECTOR_TEXT_TAGS: frozenset[str] = frozenset({"text", "tspan"})

# Properties a child inherits from its parent when it does not set them.
INHERITED_PROPERTIES: tuple[str, ...] = ("color", "fill", "font-family", "font-size", "font-weight")

DEFAULT_STYLE: dict[str, str] = {
    "color": "#000000",
    "font-family": "Arial, Helvetica, sans-serif",
    "font-size": "16px",
}


@dataclass(eq=False)
class VisualNode:
    """One element of a mounted visual tree.

    ``style`` holds the node's own declarations; ``box`` is the resolved layout
    box in page coordinates once something has laid the node out.
    """

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    style: dict[str, str] = field(default_factory=dict)
    text: str = ""
    children: list[VisualNode] = field(default_factory=list)
    box: Box | None = None

    def append(self, child: VisualNode) -> VisualNode:
        self.children.append(child)
        return child


class RenderSurface(Protocol):
    """What the capture pipeline needs from a live layout engine."""

    def computed_style(self, node: VisualNode) -> Mapping[str, str]: ...

    def bounding_box(self, node: VisualNode) -> Box: ...


def walk(root: VisualNode) -> Iterator[VisualNode]:
    """Breadth-first traversal, children in document order."""
    queue: deque[VisualNode] = deque([root])
    while queue:
        node = queue.popleft()
        yield node
        queue.extend(node.children)


def walk_preorder(root: VisualNode) -> Iterator[VisualNode]:
    """Depth-first document order, i.e. paint order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def vector_graphics(root: VisualNode) -> list[VisualNode]:
    return [node for node in walk(root) if node.tag == VECTOR_ROOT_TAG]


def vector_text_nodes(root: VisualNode) -> Iterator[VisualNode]:
    """Text-bearing leaves that sit inside a vector graphic."""
    for graphic in vector_graphics(root):
        for node in walk(graphic):
            if node.tag in VECTOR_TEXT_TAGS and not node.children:
                yield node


def parse_px(value: str | None, default: float = 0.0) -> float:
    if not value:
        return default
    text = str(value).strip().lower().removesuffix("px").strip()
    try:
        return float(text)
    except ValueError:
        return default


class StaticSurface:
    """RenderSurface over a tree whose boxes were assigned by its renderer.

    Resolves inherited properties by walking up the parent chain, the way a
    browser cascades ``color`` and font settings into descendants.
    """

    def __init__(self, root: VisualNode) -> None:
        self.root = root
        self._parents: dict[int, VisualNode] = {}
        for node in walk(root):
            for child in node.children:
                self._parents[id(child)] = node

    def computed_style(self, node: VisualNode) -> Mapping[str, str]:
        resolved = dict(DEFAULT_STYLE)
        chain = [node]
        parent = self._parents.get(id(node))
        while parent is not None:
            chain.append(parent)
            parent = self._parents.get(id(parent))

        for ancestor in reversed(chain[1:]):
            for prop in INHERITED_PROPERTIES:
                if prop in ancestor.style:
                    resolved[prop] = ancestor.style[prop]
        resolved.update(node.style)
        return resolved

    def bounding_box(self, node: VisualNode) -> Box:
        return node.box if node.box is not None else Box(0.0, 0.0, 0.0, 0.0)
