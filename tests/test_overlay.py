from __future__ import annotations

import pytest

from models import Box
from overlay import OVERLAY_COLOR, OVERLAY_MARKER, is_numeric_label, project_numeric_labels
from visual import VisualNode


@pytest.mark.parametrize("text,expected", [
    ("12", True),
    ("1,234", True),
    ("-3.5", True),
    ("+7", True),
    (" 42 ", True),
    ("Article", False),
    ("12a", False),
    ("1,23", False),
    ("", False),
    (None, False),
])
def test_is_numeric_label(text: str | None, expected: bool) -> None:
    assert is_numeric_label(text) is expected


def _clone() -> VisualNode:
    root = VisualNode("section", box=Box(100, 50, 600, 400))
    svg = root.append(VisualNode("svg", box=Box(120, 90, 500, 300)))
    svg.append(VisualNode("text", text="12", style={"font-size": "12px"}, box=Box(140, 110, 14, 12)))
    svg.append(VisualNode("text", text="Article", box=Box(140, 380, 40, 12)))
    group = svg.append(VisualNode("g"))
    group.append(VisualNode("tspan", text="3", box=Box(200, 150, 8, 11)))
    # numeric text outside a vector graphic is not a chart label
    root.append(VisualNode("p", text="2024", box=Box(100, 460, 40, 16)))
    return root


def test_projects_only_numeric_vector_labels() -> None:
    clone = _clone()
    count = project_numeric_labels(clone)

    overlays = [n for n in clone.children if n.attrs.get("data-overlay") == OVERLAY_MARKER]
    assert count == 2
    assert sorted(o.text for o in overlays) == ["12", "3"]


def test_overlay_is_positioned_relative_to_clone_origin() -> None:
    clone = _clone()
    project_numeric_labels(clone)

    overlay = next(n for n in clone.children if n.text == "12" and n.tag == "div")
    assert overlay.style["position"] == "absolute"
    assert overlay.style["left"] == "40px"
    assert overlay.style["top"] == "60px"
    assert overlay.style["font-size"] == "12px"
    assert overlay.style["color"] == OVERLAY_COLOR
    assert overlay.box == Box(140, 110, 14, 12)


def test_font_size_falls_back_to_label_height() -> None:
    clone = _clone()
    project_numeric_labels(clone)

    overlay = next(n for n in clone.children if n.text == "3" and n.tag == "div")
    assert overlay.style["font-size"] == "11px"


def test_no_labels_no_overlays() -> None:
    clone = VisualNode("div", box=Box(0, 0, 10, 10))
    assert project_numeric_labels(clone) == 0
    assert clone.children == []
