"""Render-to-document export: one capture job from live tree to PDF bytes.

    Idle → WaitingForRender → Cloning → Overlaying → Rasterizing
         → Slicing → Assembling → Done

Error is reachable from every step and always runs cleanup before the error
propagates. Cancelled is reachable from WaitingForRender only, the one
step that waits on something outside the job. Only one job runs at a time:
jobs share the capture backend and its temporary resources.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, NamedTuple

from assembler import assemble_document, page_size
from cloner import clone_with_presentation
from config import CaptureConfig
from errors import CaptureFailure, ExportBusy, ExportCancelled, ReportingError, RenderTimeout
from models import PageSlice
from overlay import project_numeric_labels
from rasterizer import CaptureBackend, PillowCaptureBackend, Rasterizer
from readiness import wait_for_render
from report import artifact_filename
from slicer import overlap_rows_for, page_rows_for, slice_bitmap
from visual import RenderSurface, VisualNode

LOGGER = logging.getLogger(__name__)

_EXPORT_LOCK = threading.Lock()


class ExportState(enum.Enum):
    IDLE = "idle"
    WAITING_FOR_RENDER = "waiting_for_render"
    CLONING = "cloning"
    OVERLAYING = "overlaying"
    RASTERIZING = "rasterizing"
    SLICING = "slicing"
    ASSEMBLING = "assembling"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


_NEXT_STATE = {
    ExportState.IDLE: ExportState.WAITING_FOR_RENDER,
    ExportState.WAITING_FOR_RENDER: ExportState.CLONING,
    ExportState.CLONING: ExportState.OVERLAYING,
    ExportState.OVERLAYING: ExportState.RASTERIZING,
    ExportState.RASTERIZING: ExportState.SLICING,
    ExportState.SLICING: ExportState.ASSEMBLING,
    ExportState.ASSEMBLING: ExportState.DONE,
}


class ExportArtifact(NamedTuple):
    filename: str
    content: bytes
    page_count: int
    render_ready: bool
    skipped_nodes: int
    overlays: int
    render_timeout: RenderTimeout | None = None


@dataclass
class CaptureJob:
    """Owns the clone, bitmap and slices of one export until it finishes."""

    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: ExportState = ExportState.IDLE
    history: list[ExportState] = field(default_factory=lambda: [ExportState.IDLE])
    clone: VisualNode | None = None
    bitmap: Any = None
    slices: list[PageSlice] = field(default_factory=list)
    resources: ExitStack = field(default_factory=ExitStack)

    def advance(self, target: ExportState) -> None:
        if target in (ExportState.ERROR, ExportState.CANCELLED):
            if target is ExportState.CANCELLED and self.state is not ExportState.WAITING_FOR_RENDER:
                raise RuntimeError(f"cannot cancel from state {self.state.value}")
        elif _NEXT_STATE.get(self.state) is not target:
            raise RuntimeError(f"illegal transition {self.state.value} -> {target.value}")
        LOGGER.debug("export[%s]: %s -> %s", self.job_id, self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def own(self, callback: Callable[[], Any]) -> None:
        """Register a release action that runs on every exit path."""
        self.resources.callback(callback)

    def release(self) -> None:
        """Run every owned release action; failures are logged, never raised."""
        try:
            self.resources.close()
        except Exception as exc:  # a failed release must not mask the job outcome
            LOGGER.warning("export[%s]: resource release failed: %s", self.job_id, exc)
        finally:
            self.clone = None
            self.bitmap = None
            self.slices = []


def is_busy() -> bool:
    return _EXPORT_LOCK.locked()


def export_visual_report(
    surface: RenderSurface,
    container: VisualNode | None,
    *,
    capture: CaptureConfig | None = None,
    backend: CaptureBackend | None = None,
    subject: str = "ALL",
    prefix: str = "report",
    title: str | None = None,
    now: datetime | None = None,
    cancelled: Callable[[], bool] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    job: CaptureJob | None = None,
) -> ExportArtifact:
    """Capture the mounted container into a multi-page PDF.

    Raises ExportBusy if another export is running, ExportCancelled if
    ``cancelled()`` fires during the readiness wait, and CaptureFailure or
    AssemblyFailure for fatal errors after the clone exists. A readiness
    timeout is logged and the capture proceeds with whatever is mounted.
    """
    if container is None:
        raise CaptureFailure("Nothing to export: no visual container is mounted")
    if not _EXPORT_LOCK.acquire(blocking=False):
        raise ExportBusy("Another export is already running")

    capture = capture or CaptureConfig()
    backend = backend or PillowCaptureBackend()
    job = job or CaptureJob()
    LOGGER.info("export[%s]: started subject=%s", job.job_id, subject)

    try:
        job.advance(ExportState.WAITING_FOR_RENDER)
        render_ready = wait_for_render(
            surface,
            container,
            timeout=capture.render_timeout_seconds,
            interval=capture.render_poll_seconds,
            min_px=capture.min_element_px,
            clock=clock,
            sleep=sleep,
            cancelled=cancelled,
        )
        render_timeout = None
        if not render_ready:
            render_timeout = RenderTimeout(f"charts not ready after {capture.render_timeout_seconds}s")
            LOGGER.warning("export[%s]: %s; capturing best-effort", job.job_id, render_timeout)

        job.advance(ExportState.CLONING)
        cloned = clone_with_presentation(surface, container)
        job.clone = cloned.root
        job.clone.style.update({
            "background-color": "#ffffff",
            "color": "#222",
            "font-family": "Arial, Helvetica, sans-serif",
        })

        job.advance(ExportState.OVERLAYING)
        overlays = project_numeric_labels(job.clone)

        job.advance(ExportState.RASTERIZING)
        rasterizer = Rasterizer(
            backend,
            scale=capture.scale,
            settle_seconds=capture.settle_seconds,
            viewport_width=capture.viewport_width,
            sleep=sleep,
        )
        job.bitmap = rasterizer.capture(job.clone)
        job.own(job.bitmap.close)

        job.advance(ExportState.SLICING)
        size = page_size(capture.page_format, capture.orientation)
        page_rows = page_rows_for(size, capture.margin_pt, job.bitmap.width)
        overlap = overlap_rows_for(capture.overlap_pt, size, capture.margin_pt, job.bitmap.width)
        job.slices = slice_bitmap(job.bitmap, page_rows, overlap)
        for page_slice in job.slices:
            job.own(page_slice.image.close)

        job.advance(ExportState.ASSEMBLING)
        content = assemble_document(
            job.slices,
            page_format=capture.page_format,
            orientation=capture.orientation,
            margin=capture.margin_pt,
            title=title,
        )
        page_count = len(job.slices)

        job.advance(ExportState.DONE)
    except ExportCancelled:
        job.advance(ExportState.CANCELLED)
        LOGGER.info("export[%s]: cancelled while waiting for render", job.job_id)
        raise
    except ReportingError as exc:
        job.advance(ExportState.ERROR)
        LOGGER.error("export[%s]: failed: %s", job.job_id, exc)
        raise
    except Exception as exc:
        job.advance(ExportState.ERROR)
        LOGGER.exception("export[%s]: unexpected failure", job.job_id)
        raise CaptureFailure(f"Export failed: {exc}") from exc
    finally:
        try:
            job.release()
        finally:
            _EXPORT_LOCK.release()

    filename = artifact_filename(prefix, subject, "pdf", now or datetime.now())
    LOGGER.info("export[%s]: done pages=%s file=%s", job.job_id, page_count, filename)
    return ExportArtifact(
        filename=filename,
        content=content,
        page_count=page_count,
        render_ready=render_ready,
        skipped_nodes=cloned.skipped,
        overlays=overlays,
        render_timeout=render_timeout,
    )
