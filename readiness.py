"""Render readiness: poll a live tree until its charts have real dimensions."""

from __future__ import annotations

import logging
import time
from typing import Callable

from errors import ExportCancelled
from visual import RenderSurface, VisualNode, vector_graphics

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 4.0
DEFAULT_INTERVAL_SECONDS = 0.08
MIN_ELEMENT_PX = 8.0


def poll_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float,
    *,
    backoff: float = 1.0,
    max_interval: float | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    cancelled: Callable[[], bool] | None = None,
) -> bool:
    """Evaluate ``predicate`` until it holds or ``timeout`` seconds elapse.

    Sleeps between polls (never busy-loops), stretching the interval by
    ``backoff`` up to ``max_interval``. Total time slept never exceeds
    ``timeout``. Returns False on timeout; raises ExportCancelled as soon as
    ``cancelled()`` reports True.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")

    deadline = clock() + max(0.0, timeout)
    delay = interval

    while True:
        if cancelled is not None and cancelled():
            raise ExportCancelled("Export abandoned while waiting for render")
        if predicate():
            return True

        remaining = deadline - clock()
        if remaining <= 0:
            return False
        sleep(min(delay, remaining))

        delay *= backoff
        if max_interval is not None:
            delay = min(delay, max_interval)


def charts_ready(surface: RenderSurface, container: VisualNode, min_px: float = MIN_ELEMENT_PX) -> bool:
    """True once at least one vector graphic exists and all of them are laid out."""
    graphics = vector_graphics(container)
    if not graphics:
        return False
    for graphic in graphics:
        try:
            box = surface.bounding_box(graphic)
        except Exception as exc:  # measuring a node mid re-render can throw
            LOGGER.debug("readiness: measuring failed, treating as not ready: %s", exc)
            return False
        if not (box.width > min_px and box.height > min_px):
            return False
    return True


def wait_for_render(
    surface: RenderSurface,
    container: VisualNode | None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    min_px: float = MIN_ELEMENT_PX,
    **poll_kwargs,
) -> bool:
    """Wait for the container's charts to report stable, non-trivial sizes.

    Returns False (never raises) when the wait times out; the caller decides
    whether to capture anyway.
    """
    if container is None:
        return False

    ready = poll_until(
        lambda: charts_ready(surface, container, min_px=min_px),
        timeout,
        interval,
        **poll_kwargs,
    )
    if ready:
        LOGGER.info("readiness: charts laid out")
    else:
        LOGGER.warning("readiness: timed out after %.2fs", timeout)
    return ready
