"""Row selection for workbook exports.

Two paths, switched by ``unique_only``:

  raw:    the export request is forwarded to the data service, which
          builds the workbook itself; its filename is used verbatim.
  unique: raw records are fetched, filtered here, deduplicated by
          (year, normalized title) keeping the first row, and written
          to a single-sheet workbook with openpyxl.

Cell formatting is out of scope: rows are written as plain values.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from openpyxl import Workbook

from config import ReportConfig
from errors import InvalidRange
from filters import CategoryFilters
from keys import BAD_PERIOD, coerce_period, field_value, key_rejection_reason, normalized_key
from models import NormalizedKey, Record
from publications_client import fetch_publications, request_server_export
from report import artifact_filename

LOGGER = logging.getLogger(__name__)

SHEET_NAME = "Publications"

SHEET_COLUMNS: list[tuple[str, str]] = [
    ("id", "id"),
    ("Entry Date", "entry_date"),
    ("Faculty", "faculty"),
    ("Publication Type", "publication_type"),
    ("Year", "period"),
    ("Title", "title"),
    ("Role", "role"),
    ("Affiliation", "affiliation"),
    ("Status", "status"),
    ("Reference", "reference"),
    ("Theme", "theme"),
]


@dataclass(frozen=True, slots=True)
class RowSelection:
    """Which rows a workbook export should contain."""

    filters: CategoryFilters = field(default_factory=CategoryFilters)
    year: int | None = None
    start_year: int | None = None
    end_year: int | None = None
    unique_only: bool = False

    def validate(self) -> None:
        if self.year is not None and (self.start_year is not None or self.end_year is not None):
            raise InvalidRange("Provide either a single year or a start/end range, not both")
        if self.start_year is not None and self.end_year is not None and self.start_year > self.end_year:
            raise InvalidRange(
                f"Start year must be <= end year (got start={self.start_year}, end={self.end_year})"
            )

    def to_payload(self) -> dict[str, Any]:
        """Request body understood by the server-side export endpoint."""
        payload: dict[str, Any] = {}
        if self.filters.faculty:
            payload["faculty"] = self.filters.faculty
        if self.year is not None:
            payload["year"] = self.year
        else:
            if self.start_year is not None:
                payload["start_year"] = self.start_year
            if self.end_year is not None:
                payload["end_year"] = self.end_year
        # The endpoint expects its documented placeholder when nothing is selected.
        payload["publication_types"] = list(self.filters.publication_types) or ["string"]
        payload["affiliations"] = list(self.filters.affiliations) or ["string"]
        payload["unique_only"] = self.unique_only
        return payload

    def matches(self, record: Record) -> bool:
        if not self.filters.matches(record):
            return False
        if self.year is None and self.start_year is None and self.end_year is None:
            return True
        period = coerce_period(field_value(record, "period"))
        if self.year is not None:
            return period == self.year
        if period is None:
            return False
        if self.start_year is not None and period < self.start_year:
            return False
        if self.end_year is not None and period > self.end_year:
            return False
        return True


def select_rows(records: Iterable[Record], selection: RowSelection) -> list[Record]:
    """Apply the selection's filters, then dedup when unique_only is set."""
    selection.validate()
    rows = [r for r in records if selection.matches(r)]
    if selection.unique_only:
        rows = dedupe_rows(rows)
    return rows


def dedupe_rows(rows: Iterable[Record]) -> list[Record]:
    """Keep the first row per normalized (year, title) key.

    Rows without a title or a whole-number year have no key and are dropped.
    """
    seen: dict[NormalizedKey, Record] = {}
    missing_title = 0
    bad_period = 0
    for row in rows:
        key = normalized_key(row)
        if key is None:
            if key_rejection_reason(row) == BAD_PERIOD:
                bad_period += 1
            else:
                missing_title += 1
            continue
        if key not in seen:
            seen[key] = row
    if missing_title or bad_period:
        LOGGER.warning(
            "Row dedup: skipped rows missing_title=%s bad_period=%s",
            missing_title,
            bad_period,
        )
    return list(seen.values())


def to_sheet_rows(rows: Iterable[Record]) -> list[dict[str, Any]]:
    out = []
    for row in rows:
        sheet_row = {}
        for header, name in SHEET_COLUMNS:
            value = field_value(row, name)
            sheet_row[header] = "" if value is None else value
        out.append(sheet_row)
    return out


def write_workbook(rows: list[dict[str, Any]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_NAME
    headers = [header for header, _ in SHEET_COLUMNS]
    sheet.append(headers)
    for row in rows:
        sheet.append([row.get(h, "") for h in headers])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_rows(
    config: ReportConfig,
    selection: RowSelection,
    now: datetime | None = None,
) -> tuple[bytes, str]:
    """Produce (workbook bytes, file name) for a selection.

    Range errors are raised before any request is made.
    """
    selection.validate()
    now = now or datetime.now()

    if not selection.unique_only:
        content, server_name = request_server_export(config, selection.to_payload())
        return content, server_name or artifact_filename("publications_filtered", None, "xlsx", now)

    records = fetch_publications(config)
    rows = select_rows(records, selection)
    LOGGER.info(
        "Row export: fetched=%s selected=%s unique_only=%s",
        len(records),
        len(rows),
        selection.unique_only,
    )
    content = write_workbook(to_sheet_rows(rows))
    return content, artifact_filename("publications_filtered_unique", None, "xlsx", now)
