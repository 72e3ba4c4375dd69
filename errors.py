"""Error kinds surfaced by the reporting engine."""

from __future__ import annotations


class ReportingError(RuntimeError):
    """Base class for every error this package raises on purpose."""


class DataUnavailable(ReportingError):
    """The data service could not be reached, refused auth, or sent garbage."""


class InvalidRange(ReportingError, ValueError):
    """start > end, or mutually exclusive period arguments were combined."""


class RenderTimeout(ReportingError):
    """The readiness wait ran out. Non-fatal: capture proceeds best-effort."""


class CaptureFailure(ReportingError):
    """Rasterization of the prepared clone failed."""


class AssemblyFailure(ReportingError):
    """No slices to assemble, or the document writer raised."""


class ExportCancelled(ReportingError):
    """The caller abandoned the job while it was waiting for the render."""


class ExportBusy(ReportingError):
    """Another export job currently owns the capture resources."""
