"""Per-period aggregation with first-wins title dedup, and gap filling.

Public API
----------
aggregate_by_period(records, start, end, filters, dimensions) -> AggregationResult
fill_range(buckets, start, end, dimensions)                   -> list[PeriodBucket]
build_series(records, start, end, filters, dimensions)        -> (series, result)
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from errors import InvalidRange
from filters import CategoryFilters
from keys import coerce_period, field_text, field_value, normalize_text, normalized_key
from models import UNKNOWN_CATEGORY, AggregationResult, NormalizedKey, PeriodBucket, Record

LOGGER = logging.getLogger(__name__)

# Dimension name -> record field it counts.
DIMENSION_FIELDS: dict[str, str] = {
    "publication_types": "publication_type",
    "affiliations": "affiliation",
    "roles": "role",
    "statuses": "status",
}
DEFAULT_DIMENSIONS: tuple[str, ...] = ("publication_types", "affiliations")


def check_range(start: int, end: int) -> None:
    if start > end:
        raise InvalidRange(f"Start period must be <= end period (got start={start}, end={end})")


class _Accumulator:
    """Mutable per-period state; frozen into a PeriodBucket at the end."""

    def __init__(self, dimensions: tuple[str, ...]) -> None:
        self.retained: dict[NormalizedKey, Record] = {}
        self.counts: dict[str, dict[str, int]] = {dim: {} for dim in dimensions}
        self.contributors: set[str] = set()
        self.author_entries = 0

    def freeze(self, period: int) -> PeriodBucket:
        publications = len(self.retained)
        average = round(self.author_entries / publications, 2) if publications else 0.0
        return PeriodBucket(
            period=period,
            records=tuple(self.retained.values()),
            category_counts={dim: dict(counts) for dim, counts in self.counts.items()},
            unique_contributors=len(self.contributors),
            average_authors_per_publication=average,
        )


def aggregate_by_period(
    records: Iterable[Record],
    start: int,
    end: int,
    filters: CategoryFilters | None = None,
    dimensions: tuple[str, ...] = DEFAULT_DIMENSIONS,
) -> AggregationResult:
    """Group records by period, keeping the first record per normalized title.

    Records are visited in input order. Within a period, the first record
    with a given normalized title is retained and counted in every category
    dimension; later records with the same key are dropped. Every keyed
    record still counts as an author entry for contributor metrics, since
    the data service stores one row per (faculty member, publication).
    """
    check_range(start, end)
    unknown = [dim for dim in dimensions if dim not in DIMENSION_FIELDS]
    if unknown:
        raise ValueError(f"Unknown category dimension(s): {', '.join(unknown)}")

    filters = filters or CategoryFilters()
    accumulators: dict[int, _Accumulator] = {}
    missing_title = 0
    bad_period = 0
    duplicates = 0

    for record in records:
        period = coerce_period(field_value(record, "period"))
        if period is None:
            bad_period += 1
            continue
        if period < start or period > end:
            continue
        if not filters.matches(record):
            continue

        key = normalized_key(record)
        if key is None:
            missing_title += 1
            continue

        acc = accumulators.get(period)
        if acc is None:
            acc = accumulators[period] = _Accumulator(dimensions)

        acc.author_entries += 1
        contributor = normalize_text(field_value(record, "faculty"))
        if contributor:
            acc.contributors.add(contributor)

        if key in acc.retained:
            duplicates += 1
            continue

        acc.retained[key] = record
        for dim in dimensions:
            category = field_text(record, DIMENSION_FIELDS[dim]) or UNKNOWN_CATEGORY
            acc.counts[dim][category] = acc.counts[dim].get(category, 0) + 1

    if missing_title or bad_period:
        LOGGER.warning(
            "aggregate: skipped records missing_title=%s bad_period=%s",
            missing_title,
            bad_period,
        )
    LOGGER.info(
        "aggregate: range=%s-%s periods_with_data=%s duplicates=%s",
        start,
        end,
        len(accumulators),
        duplicates,
    )

    return AggregationResult(
        buckets={period: acc.freeze(period) for period, acc in sorted(accumulators.items())},
        dimensions=dimensions,
        skipped_missing_title=missing_title,
        skipped_bad_period=bad_period,
        duplicates=duplicates,
    )


def fill_range(
    buckets: Mapping[int, PeriodBucket],
    start: int,
    end: int,
    dimensions: tuple[str, ...] = DEFAULT_DIMENSIONS,
) -> list[PeriodBucket]:
    """Return exactly one bucket per period in [start, end], ascending."""
    check_range(start, end)
    return [
        buckets[period] if period in buckets else PeriodBucket.zero(period, dimensions)
        for period in range(start, end + 1)
    ]


def build_series(
    records: Iterable[Record],
    start: int,
    end: int,
    filters: CategoryFilters | None = None,
    dimensions: tuple[str, ...] = DEFAULT_DIMENSIONS,
) -> tuple[list[PeriodBucket], AggregationResult]:
    """Aggregate and gap-fill in one step."""
    result = aggregate_by_period(records, start, end, filters=filters, dimensions=dimensions)
    return fill_range(result.buckets, start, end, dimensions=result.dimensions), result
