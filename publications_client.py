"""Publications data-service client.

Fetches raw publication records over an authenticated request and requests
server-side workbook exports. No retries: a failed call surfaces as one
DataUnavailable to the caller, who decides whether to try again.
"""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import unquote

import requests

from config import ReportConfig
from errors import DataUnavailable
from models import Record

LOGGER = logging.getLogger(__name__)

PUBLICATIONS_PATH = "/get-publications"
EXCEL_EXPORT_PATH = "/export-publications-excel"

_CONTENT_DISPOSITION_RE = re.compile(
    r"""filename\*=UTF-8''([^;]+)|filename="([^"]+)"|filename=([^;]+)""",
    re.IGNORECASE,
)


def fetch_publications(config: ReportConfig) -> list[Record]:
    """Fetch every publication record the data service will return."""
    url = f"{config.base_url}{PUBLICATIONS_PATH}"
    try:
        response = requests.get(url, auth=config.auth, timeout=config.timeout_seconds)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as exc:
        raise DataUnavailable(f"Publications fetch failed: {_describe_failure(exc)}") from exc
    except ValueError as exc:
        raise DataUnavailable(f"Publications fetch returned invalid JSON: {exc}") from exc

    records = _parse_publications_payload(payload)
    LOGGER.info("Publications fetch: url=%s returned=%s", url, len(records))
    return records


def request_server_export(config: ReportConfig, payload: dict[str, Any]) -> tuple[bytes, str | None]:
    """POST an export request and return (body, server-supplied filename or None)."""
    url = f"{config.base_url}{EXCEL_EXPORT_PATH}"
    try:
        response = requests.post(url, json=payload, auth=config.auth, timeout=config.timeout_seconds)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DataUnavailable(f"Server export failed: {_describe_failure(exc)}") from exc

    filename = filename_from_content_disposition(response.headers.get("content-disposition", ""))
    LOGGER.info("Server export: url=%s bytes=%s filename=%s", url, len(response.content), filename)
    return response.content, filename


def filename_from_content_disposition(header: str | None) -> str | None:
    """Extract the filename from a content-disposition header, if any."""
    if not header:
        return None
    match = _CONTENT_DISPOSITION_RE.search(header)
    if not match:
        return None
    raw = next((group for group in match.groups() if group), "")
    name = unquote(raw.strip()).strip('"')
    return name or None


def _parse_publications_payload(payload: Any) -> list[Record]:
    """Accept either a bare list or a {"data": [...]} envelope."""
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        raise DataUnavailable("Unexpected publications payload shape: expected a list")
    return [item for item in payload if isinstance(item, dict)]


def _describe_failure(exc: requests.RequestException) -> str:
    """Prefer the server's own detail/message over the bare status line."""
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail:
            return f"{response.status_code} {detail}"
    text = (response.text or "").strip()
    return f"{response.status_code} {text or response.reason or ''}".strip()
