"""CLI entrypoint for the publication reporting engine."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from aggregation import DIMENSION_FIELDS, build_series
from chart_view import render_report
from config import CaptureConfig, ReportConfig
from errors import InvalidRange, ReportingError
from export_pipeline import export_visual_report
from filters import CategoryFilters
from publications_client import fetch_publications
from report import artifact_filename, series_to_json, write_series_csv
from row_export import RowSelection, export_rows


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Publication statistics and report exports")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_filters(p: argparse.ArgumentParser) -> None:
        p.add_argument("--type", dest="types", action="append", default=[], help="Publication type (repeatable)")
        p.add_argument("--affiliation", dest="affiliations", action="append", default=[], help="Affiliation (repeatable)")
        p.add_argument("--faculty", default="", help="Restrict to one faculty member")
        p.add_argument("--output-dir", type=Path, default=Path("."), help="Where to write files (default: .)")

    stats = sub.add_parser("stats", help="Per-year statistics with category breakdowns")
    stats.add_argument("--start", type=int, default=None, help="First year (default: REPORT_START_PERIOD)")
    stats.add_argument("--end", type=int, default=None, help="Last year (default: REPORT_END_PERIOD)")
    stats.add_argument(
        "--dimension",
        dest="dimensions",
        action="append",
        choices=sorted(DIMENSION_FIELDS),
        default=None,
        help="Category dimension to count (repeatable; default: publication_types, affiliations)",
    )
    stats.add_argument("--csv", action="store_true", help="Write the series table as CSV")
    stats.add_argument("--json", action="store_true", help="Print the series as JSON")
    add_filters(stats)

    rows = sub.add_parser("export-rows", help="Workbook export of selected publication rows")
    rows.add_argument("--year", type=int, default=None, help="Single year (exclusive with --start/--end)")
    rows.add_argument("--start", type=int, default=None)
    rows.add_argument("--end", type=int, default=None)
    rows.add_argument("--unique-only", action="store_true", help="Deduplicate by (year, title) client-side")
    add_filters(rows)

    pdf = sub.add_parser("export-pdf", help="Multi-page PDF of the yearly statistics charts")
    pdf.add_argument("--start", type=int, default=None)
    pdf.add_argument("--end", type=int, default=None)
    add_filters(pdf)

    return parser.parse_args(argv)


def _filters(args: argparse.Namespace) -> CategoryFilters:
    return CategoryFilters.build(args.types, args.affiliations, args.faculty)


def _period_range(args: argparse.Namespace, config: ReportConfig) -> tuple[int, int]:
    start = args.start if args.start is not None else config.start_period
    end = args.end if args.end is not None else config.end_period
    if start > end:
        raise InvalidRange(f"Start year must be <= end year (got start={start}, end={end})")
    return start, end


def run_stats(args: argparse.Namespace, config: ReportConfig) -> None:
    start, end = _period_range(args, config)
    filters = _filters(args)
    dimensions = tuple(args.dimensions) if args.dimensions else ("publication_types", "affiliations")

    records = fetch_publications(config)
    series, result = build_series(records, start, end, filters=filters, dimensions=dimensions)
    logging.info(
        "Stats: periods=%s retained=%s duplicates=%s skipped=%s",
        len(series),
        sum(b.publications for b in series),
        result.duplicates,
        result.skipped,
    )
    if result.skipped:
        logging.warning(
            "Data quality: %s records without a title, %s with a non-numeric year were left out",
            result.skipped_missing_title,
            result.skipped_bad_period,
        )

    if args.json:
        print(series_to_json(series))
    else:
        print(filters.describe(start, end))
        for bucket in series:
            print(
                f"{bucket.period}: publications={bucket.publications} "
                f"contributors={bucket.unique_contributors} "
                f"avg_authors={bucket.average_authors_per_publication}"
            )

    if args.csv:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        path = args.output_dir / artifact_filename("yearly_stats", filters.subject(), "csv", datetime.now())
        write_series_csv(path, series)
        print(f"Series table → {path}")


def run_export_rows(args: argparse.Namespace, config: ReportConfig) -> None:
    selection = RowSelection(
        filters=_filters(args),
        year=args.year,
        start_year=args.start,
        end_year=args.end,
        unique_only=args.unique_only,
    )
    content, filename = export_rows(config, selection)
    args.output_dir.mkdir(parents=True, exist_ok=True)
    path = args.output_dir / filename
    path.write_bytes(content)
    print(f"Workbook → {path}")


def run_export_pdf(args: argparse.Namespace, config: ReportConfig, capture: CaptureConfig) -> None:
    start, end = _period_range(args, config)
    filters = _filters(args)

    records = fetch_publications(config)
    series, _ = build_series(records, start, end, filters=filters)

    now = datetime.now()
    root, surface = render_report(series, filters.describe(start, end), generated_at=now)
    artifact = export_visual_report(
        surface,
        root,
        capture=capture,
        subject=filters.subject(),
        prefix="yearly_stats",
        title="Yearly Publications",
        now=now,
    )
    args.output_dir.mkdir(parents=True, exist_ok=True)
    path = args.output_dir / artifact.filename
    path.write_bytes(artifact.content)
    print(f"PDF ({artifact.page_count} pages) → {path}")


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute one command."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)
    config = ReportConfig.from_env()

    try:
        if args.command == "stats":
            run_stats(args, config)
        elif args.command == "export-rows":
            run_export_rows(args, config)
        else:
            run_export_pdf(args, config, CaptureConfig.from_env())
    except ReportingError as exc:
        logging.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
