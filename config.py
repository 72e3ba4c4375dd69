"""Explicit configuration values for fetch, aggregation and capture."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "http://127.0.0.1:8000"
REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_START_PERIOD = 2000
DEFAULT_END_PERIOD = 2025


@dataclass(frozen=True, slots=True)
class ReportConfig:
    """Where the data lives and which periods a report covers."""

    base_url: str = DEFAULT_BASE_URL
    username: str = ""
    password: str = ""
    timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    start_period: int = DEFAULT_START_PERIOD
    end_period: int = DEFAULT_END_PERIOD

    @classmethod
    def from_env(cls) -> ReportConfig:
        return cls(
            base_url=os.getenv("PUBSTATS_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            username=os.getenv("PUBSTATS_USERNAME", ""),
            password=os.getenv("PUBSTATS_PASSWORD", ""),
            timeout_seconds=float(os.getenv("PUBSTATS_TIMEOUT_SECONDS", str(REQUEST_TIMEOUT_SECONDS))),
            start_period=int(os.getenv("REPORT_START_PERIOD", str(DEFAULT_START_PERIOD))),
            end_period=int(os.getenv("REPORT_END_PERIOD", str(DEFAULT_END_PERIOD))),
        )

    @property
    def auth(self) -> tuple[str, str] | None:
        if not self.username:
            return None
        return (self.username, self.password)


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    """Scale, margin and timing constants for the render-to-document export.

    Lengths ending in ``_pt`` are PDF points; ``scale`` is bitmap pixels per
    CSS pixel.
    """

    scale: float = 2.0
    margin_pt: float = 18.0
    overlap_pt: float = 40.0
    page_format: str = "A4"
    orientation: str = "landscape"
    render_timeout_seconds: float = 4.0
    render_poll_seconds: float = 0.08
    settle_seconds: float = 0.5
    viewport_width: int = 1280
    min_element_px: float = 8.0

    @classmethod
    def from_env(cls) -> CaptureConfig:
        return cls(
            scale=float(os.getenv("CAPTURE_SCALE", "2")),
            margin_pt=float(os.getenv("CAPTURE_MARGIN_PT", "18")),
            overlap_pt=float(os.getenv("CAPTURE_OVERLAP_PT", "40")),
            page_format=os.getenv("CAPTURE_PAGE_FORMAT", "A4"),
            orientation=os.getenv("CAPTURE_ORIENTATION", "landscape"),
            render_timeout_seconds=float(os.getenv("RENDER_TIMEOUT_SECONDS", "4")),
            render_poll_seconds=float(os.getenv("RENDER_POLL_SECONDS", "0.08")),
            settle_seconds=float(os.getenv("CAPTURE_SETTLE_SECONDS", "0.5")),
            viewport_width=int(os.getenv("CAPTURE_VIEWPORT_WIDTH", "1280")),
            min_element_px=float(os.getenv("RENDER_MIN_ELEMENT_PX", "8")),
        )
