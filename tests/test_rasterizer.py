from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from PIL import Image

from errors import CaptureFailure
from models import Box
from rasterizer import OFFSCREEN_OFFSET_PX, PillowCaptureBackend, Rasterizer, natural_height, natural_width
from visual import VisualNode


def _clone() -> VisualNode:
    root = VisualNode("div", style={"background-color": "#ffffff"}, box=Box(0, 0, 100, 50))
    svg = root.append(VisualNode("svg", box=Box(0, 0, 100, 50)))
    svg.append(VisualNode("rect", attrs={"fill": "#ff0000"}, box=Box(10, 10, 20, 20)))
    return root


def test_natural_extent_includes_overflowing_children() -> None:
    root = VisualNode("div", box=Box(10, 10, 50, 50))
    root.append(VisualNode("p", box=Box(20, 40, 100, 70)))
    assert natural_width(root) == 110
    assert natural_height(root) == 100


def test_pillow_backend_paints_shapes() -> None:
    rasterizer = Rasterizer(PillowCaptureBackend(), scale=1, settle_seconds=0, viewport_width=100)
    bitmap = rasterizer.capture(_clone())

    assert bitmap.size == (100, 50)
    assert bitmap.getpixel((15, 15)) == (255, 0, 0)
    assert bitmap.getpixel((90, 40)) == (255, 255, 255)


def test_scale_multiplies_bitmap_size() -> None:
    rasterizer = Rasterizer(PillowCaptureBackend(), scale=2, settle_seconds=0, viewport_width=100)
    bitmap = rasterizer.capture(_clone())

    assert bitmap.size == (200, 100)
    assert bitmap.getpixel((30, 30)) == (255, 0, 0)


def test_width_is_at_least_viewport_minus_gutter() -> None:
    rasterizer = Rasterizer(PillowCaptureBackend(), scale=1, settle_seconds=0, viewport_width=1280)
    assert rasterizer.capture(_clone()).width == 1240


def test_text_is_painted() -> None:
    root = VisualNode("div", box=Box(0, 0, 120, 40))
    root.append(VisualNode("div", text="1234", style={"color": "#000000", "font-size": "20px"}, box=Box(5, 5, 60, 24)))
    bitmap = Rasterizer(PillowCaptureBackend(), scale=1, settle_seconds=0, viewport_width=120).capture(root)

    colours = {bitmap.getpixel((x, y)) for x in range(5, 65) for y in range(5, 29)}
    assert any(c != (255, 255, 255) for c in colours)


def test_backend_is_attached_offscreen_settled_and_detached() -> None:
    backend = MagicMock()
    backend.capture.return_value = Image.new("RGB", (10, 10))
    sleeps: list[float] = []

    Rasterizer(backend, scale=2, settle_seconds=0.5, viewport_width=100, sleep=sleeps.append).capture(_clone())

    left, top = backend.attach.call_args.args[1:3]
    assert (left, top) == (OFFSCREEN_OFFSET_PX, OFFSCREEN_OFFSET_PX)
    assert sleeps == [0.5]
    backend.capture.assert_called_once_with(backend.attach.return_value, 2)
    backend.detach.assert_called_once_with(backend.attach.return_value)


def test_capture_error_becomes_capture_failure_and_still_detaches() -> None:
    backend = MagicMock()
    backend.capture.side_effect = RuntimeError("canvas tainted")

    with pytest.raises(CaptureFailure, match="canvas tainted"):
        Rasterizer(backend, settle_seconds=0).capture(_clone())
    backend.detach.assert_called_once()


def test_attach_error_skips_detach() -> None:
    backend = MagicMock()
    backend.attach.side_effect = RuntimeError("no document")

    with pytest.raises(CaptureFailure):
        Rasterizer(backend, settle_seconds=0).capture(_clone())
    backend.detach.assert_not_called()


def test_detach_error_does_not_mask_result() -> None:
    backend = MagicMock()
    backend.capture.return_value = Image.new("RGB", (10, 10))
    backend.detach.side_effect = RuntimeError("already gone")

    bitmap = Rasterizer(backend, settle_seconds=0).capture(_clone())
    assert bitmap.size == (10, 10)


def test_pillow_backend_rejects_detached_handle() -> None:
    backend = PillowCaptureBackend()
    handle = backend.attach(_clone(), 0, 0, 100)
    backend.detach(handle)

    assert backend.attached == []
    with pytest.raises(CaptureFailure):
        backend.capture(handle, 1)


def test_non_positive_scale_rejected() -> None:
    with pytest.raises(ValueError):
        Rasterizer(PillowCaptureBackend(), scale=0)
