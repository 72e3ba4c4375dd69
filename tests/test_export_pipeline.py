from __future__ import annotations

import re
from datetime import datetime

import pytest

import export_pipeline
from aggregation import build_series
from chart_view import render_report
from config import CaptureConfig
from errors import AssemblyFailure, CaptureFailure, ExportBusy, ExportCancelled, RenderTimeout
from export_pipeline import CaptureJob, ExportState, export_visual_report, is_busy
from models import Box
from rasterizer import PillowCaptureBackend
from visual import StaticSurface, VisualNode

_NOW = datetime(2025, 6, 1, 12, 0, 0)
_FAST = CaptureConfig(scale=1.0, settle_seconds=0.0)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def _mounted_report():
    records = [
        {"Year": 2020, "Title": "A", "Publication Type": "Article", "Affiliation": "IED", "Faculty": "Alice"},
        {"Year": 2020, "Title": "B", "Publication Type": "Book", "Affiliation": "IED", "Faculty": "Bob"},
        {"Year": 2021, "Title": "C", "Publication Type": "Article", "Affiliation": "External", "Faculty": "Alice"},
    ]
    series, _ = build_series(records, 2019, 2022)
    return render_report(series, "Filters: none", generated_at=_NOW)


def _pdf_pages(content: bytes) -> int:
    return len(re.findall(rb"/Type\s*/Page(?!s)", content))


def test_export_produces_named_multi_page_pdf() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()

    artifact = export_visual_report(
        surface, root, capture=_FAST, subject="Sajid Ali", now=_NOW, clock=clock, sleep=clock.sleep,
    )

    assert artifact.filename == "report_Sajid_Ali_20250601T120000000.pdf"
    assert artifact.content.startswith(b"%PDF")
    assert artifact.render_ready is True
    assert artifact.render_timeout is None
    assert artifact.skipped_nodes == 0
    assert artifact.overlays > 0
    assert artifact.page_count >= 2
    assert _pdf_pages(artifact.content) == artifact.page_count
    assert is_busy() is False


def test_successful_job_walks_every_state_and_releases_resources() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    job = CaptureJob()

    export_visual_report(surface, root, capture=_FAST, now=_NOW, clock=clock, sleep=clock.sleep, job=job)

    assert job.history == [
        ExportState.IDLE,
        ExportState.WAITING_FOR_RENDER,
        ExportState.CLONING,
        ExportState.OVERLAYING,
        ExportState.RASTERIZING,
        ExportState.SLICING,
        ExportState.ASSEMBLING,
        ExportState.DONE,
    ]
    assert job.clone is None
    assert job.bitmap is None
    assert job.slices == []


def test_export_leaves_mounted_tree_untouched() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    child_count = len(root.children)
    root_style = dict(root.style)

    export_visual_report(surface, root, capture=_FAST, now=_NOW, clock=clock, sleep=clock.sleep)

    assert len(root.children) == child_count
    assert root.style == root_style


def test_render_timeout_still_captures() -> None:
    root = VisualNode("div", box=Box(0, 0, 300, 200))
    root.append(VisualNode("svg", box=Box(0, 0, 0, 0)))
    clock = FakeClock()

    artifact = export_visual_report(
        StaticSurface(root), root, capture=_FAST, now=_NOW, clock=clock, sleep=clock.sleep,
    )

    assert artifact.render_ready is False
    assert isinstance(artifact.render_timeout, RenderTimeout)
    assert artifact.page_count == 1
    assert clock.now == pytest.approx(_FAST.render_timeout_seconds)


def test_cancel_during_wait() -> None:
    root = VisualNode("div", box=Box(0, 0, 300, 200))
    root.append(VisualNode("svg", box=Box(0, 0, 0, 0)))
    clock = FakeClock()
    job = CaptureJob()

    with pytest.raises(ExportCancelled):
        export_visual_report(
            StaticSurface(root), root, capture=_FAST, clock=clock, sleep=clock.sleep,
            cancelled=lambda: clock.now > 0.2, job=job,
        )

    assert job.state is ExportState.CANCELLED
    assert ExportState.CLONING not in job.history
    assert is_busy() is False


def test_second_export_while_running_is_busy() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    nested: list[Exception] = []

    class ReentrantBackend(PillowCaptureBackend):
        def capture(self, handle, scale):
            assert is_busy() is True
            try:
                export_visual_report(surface, root, capture=_FAST, clock=clock, sleep=clock.sleep)
            except ExportBusy as exc:
                nested.append(exc)
            return super().capture(handle, scale)

    artifact = export_visual_report(
        surface, root, capture=_FAST, backend=ReentrantBackend(), now=_NOW, clock=clock, sleep=clock.sleep,
    )

    assert len(nested) == 1
    assert artifact.content.startswith(b"%PDF")
    assert is_busy() is False


def test_capture_failure_moves_to_error_and_releases_lock() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    job = CaptureJob()

    class BrokenBackend(PillowCaptureBackend):
        def capture(self, handle, scale):
            raise RuntimeError("out of memory")

    backend = BrokenBackend()
    with pytest.raises(CaptureFailure, match="out of memory"):
        export_visual_report(
            surface, root, capture=_FAST, backend=backend, clock=clock, sleep=clock.sleep, job=job,
        )

    assert job.state is ExportState.ERROR
    assert job.clone is None
    assert backend.attached == []
    assert is_busy() is False


def test_assembly_failure_runs_cleanup(monkeypatch) -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    job = CaptureJob()
    released: list[str] = []
    job.own(lambda: released.append("owned"))

    def fail(*args, **kwargs):
        raise AssemblyFailure("writer exploded")

    monkeypatch.setattr(export_pipeline, "assemble_document", fail)

    with pytest.raises(AssemblyFailure):
        export_visual_report(surface, root, capture=_FAST, clock=clock, sleep=clock.sleep, job=job)

    assert job.history[-2:] == [ExportState.ASSEMBLING, ExportState.ERROR]
    assert released == ["owned"]
    assert job.bitmap is None
    assert job.slices == []
    assert is_busy() is False


def test_unexpected_error_is_wrapped(monkeypatch) -> None:
    root, surface = _mounted_report()
    clock = FakeClock()

    def explode(clone):
        raise KeyError("font-size")

    monkeypatch.setattr(export_pipeline, "project_numeric_labels", explode)

    with pytest.raises(CaptureFailure):
        export_visual_report(surface, root, capture=_FAST, clock=clock, sleep=clock.sleep)
    assert is_busy() is False


def test_missing_container_fails_without_taking_the_lock() -> None:
    root, surface = _mounted_report()
    with pytest.raises(CaptureFailure):
        export_visual_report(surface, None)
    assert is_busy() is False


def test_illegal_transitions_rejected() -> None:
    job = CaptureJob()
    with pytest.raises(RuntimeError):
        job.advance(ExportState.CLONING)

    job.advance(ExportState.WAITING_FOR_RENDER)
    job.advance(ExportState.CLONING)
    with pytest.raises(RuntimeError):
        job.advance(ExportState.CANCELLED)

    job.advance(ExportState.ERROR)
    assert job.state is ExportState.ERROR


def test_failed_release_action_still_frees_the_busy_flag() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    job = CaptureJob()

    def broken_release() -> None:
        raise OSError("temp file already removed")

    job.own(broken_release)

    artifact = export_visual_report(surface, root, capture=_FAST, now=_NOW, clock=clock, sleep=clock.sleep, job=job)

    assert artifact.content.startswith(b"%PDF")
    assert job.state is ExportState.DONE
    assert job.clone is None
    assert job.bitmap is None
    assert job.slices == []
    assert is_busy() is False

    # the next export is not locked out
    again = export_visual_report(surface, root, capture=_FAST, now=_NOW, clock=clock, sleep=clock.sleep)
    assert again.page_count == artifact.page_count


def test_failed_release_action_does_not_mask_the_job_error() -> None:
    root, surface = _mounted_report()
    clock = FakeClock()
    job = CaptureJob()

    def broken_release() -> None:
        raise OSError("temp file already removed")

    job.own(broken_release)

    class BrokenBackend(PillowCaptureBackend):
        def capture(self, handle, scale):
            raise RuntimeError("out of memory")

    with pytest.raises(CaptureFailure, match="out of memory"):
        export_visual_report(
            surface, root, capture=_FAST, backend=BrokenBackend(), clock=clock, sleep=clock.sleep, job=job,
        )
    assert job.state is ExportState.ERROR
    assert is_busy() is False
