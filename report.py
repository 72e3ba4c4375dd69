"""Series tables and artifact naming.

Turns an aggregated series into flat rows (one per period) and writes them
as CSV, so the same numbers that feed the charts can be opened in a
spreadsheet. Also owns the file-naming convention shared by every export:

    <prefix>_<subject>_<timestamp>.<ext>

Runnable standalone against a JSON dump of records:
    python report.py records.json 2000 2025
"""

from __future__ import annotations

import csv
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from keys import field_text
from models import PeriodBucket

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Output schema
# ---------------------------------------------------------------------------

SERIES_COLUMNS = [
    "year",
    "publications",
    "unique_contributors",
    "average_authors_per_publication",
    # JSON-encoded {category: count} per dimension
    "pub_type_counts",
    "affiliation_counts",
    "role_counts",
    "status_counts",
]

_DIMENSION_COLUMNS = {
    "publication_types": "pub_type_counts",
    "affiliations": "affiliation_counts",
    "roles": "role_counts",
    "statuses": "status_counts",
}

_UNSAFE_SUBJECT_CHARS = re.compile(r"[^A-Za-z0-9_+\-]+")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sanitize_subject(subject: str) -> str:
    """Collapse anything that is not safe in a file name into underscores."""
    cleaned = _UNSAFE_SUBJECT_CHARS.sub("_", subject.strip()).strip("_")
    return cleaned or "ALL"


def compact_timestamp(now: datetime) -> str:
    """ISO timestamp with separators removed: 20250102T030405123."""
    return re.sub(r"[:.\-]", "", now.isoformat(timespec="milliseconds"))


def artifact_filename(prefix: str, subject: str | None, ext: str, now: datetime) -> str:
    """Build ``<prefix>_<subject>_<timestamp>.<ext>``; subject None is left out."""
    parts = [prefix]
    if subject is not None:
        parts.append(sanitize_subject(subject))
    parts.append(compact_timestamp(now))
    return f"{'_'.join(parts)}.{ext.lstrip('.')}"


# ---------------------------------------------------------------------------
# Series tables
# ---------------------------------------------------------------------------


def series_to_rows(series: list[PeriodBucket]) -> list[dict[str, Any]]:
    rows = []
    for bucket in series:
        row: dict[str, Any] = {
            "year": bucket.period,
            "publications": bucket.publications,
            "unique_contributors": bucket.unique_contributors,
            "average_authors_per_publication": bucket.average_authors_per_publication,
        }
        for dim, column in _DIMENSION_COLUMNS.items():
            if dim in bucket.category_counts:
                row[column] = json.dumps(bucket.category_counts[dim], ensure_ascii=False)
        rows.append(row)
    return rows


def write_series_csv(path: str | Path, series: list[PeriodBucket]) -> None:
    rows = series_to_rows(series)
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=SERIES_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
    LOGGER.info("report: %d periods → %s", len(rows), path)


def series_to_json(series: list[PeriodBucket]) -> str:
    """Stable JSON rendering; identical input always yields identical bytes."""
    payload = []
    for bucket in series:
        payload.append({
            "year": bucket.period,
            "publications": bucket.publications,
            "unique_contributors": bucket.unique_contributors,
            "average_authors_per_publication": bucket.average_authors_per_publication,
            "category_counts": bucket.category_counts,
            "titles": [field_text(r, "title") for r in bucket.records],
        })
    return json.dumps(payload, ensure_ascii=False, indent=2)


# ---------------------------------------------------------------------------
# Standalone execution
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import sys

    from aggregation import build_series

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    source = Path(sys.argv[1])
    start, end = int(sys.argv[2]), int(sys.argv[3])
    records = json.loads(source.read_text(encoding="utf-8"))
    series, _ = build_series(records, start, end)
    out = artifact_filename("yearly_stats", None, "csv", datetime.now())
    write_series_csv(out, series)
    print(f"Series table → {out}")
