"""Shared typed models for the reporting engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple

# Records come straight from the data service as plain field mappings and are
# never mutated by this package.
Record = Mapping[str, Any]

UNKNOWN_CATEGORY = "Unknown"


class NormalizedKey(NamedTuple):
    """Dedup discriminator: (period, lowercase-trimmed title)."""

    period: int
    title: str


class Box(NamedTuple):
    """Resolved layout box in CSS pixels."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class PeriodBucket:
    """Retained records and derived metrics for one period."""

    period: int
    records: tuple[Record, ...] = ()
    category_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    unique_contributors: int = 0
    average_authors_per_publication: float = 0.0

    @property
    def publications(self) -> int:
        return len(self.records)

    @classmethod
    def zero(cls, period: int, dimensions: tuple[str, ...] = ()) -> PeriodBucket:
        return cls(period=period, category_counts={dim: {} for dim in dimensions})


@dataclass(frozen=True, slots=True)
class AggregationResult:
    """Sparse period -> bucket mapping plus a data-quality report."""

    buckets: dict[int, PeriodBucket]
    dimensions: tuple[str, ...]
    skipped_missing_title: int = 0
    skipped_bad_period: int = 0
    duplicates: int = 0

    @property
    def skipped(self) -> int:
        return self.skipped_missing_title + self.skipped_bad_period


class PageSlice(NamedTuple):
    """One page worth of rows cut from the captured bitmap."""

    source_row_start: int
    source_row_height: int
    image: Any  # PIL.Image.Image

    @property
    def source_row_end(self) -> int:
        return self.source_row_start + self.source_row_height
