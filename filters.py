"""Category filter sets applied before aggregation and row export."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from keys import field_value, normalize_text
from models import Record

PUBLICATION_TYPES: tuple[str, ...] = ("Book Chapter", "Article", "Book")
AFFILIATIONS: tuple[str, ...] = ("IED", "Alumni/Student", "External", "PDCN", "PDCC")

# Forms that leave a multi-select untouched post the API docs' sample value.
_PLACEHOLDER_VALUES: frozenset[str] = frozenset({"string"})


def _normalized_set(values: Iterable[str] | None) -> frozenset[str]:
    if not values:
        return frozenset()
    normalized = frozenset(normalize_text(v) for v in values if normalize_text(v))
    if normalized <= _PLACEHOLDER_VALUES:
        return frozenset()
    return normalized


@dataclass(frozen=True, slots=True)
class CategoryFilters:
    """Optional restrictions on publication type, affiliation and faculty.

    An empty filter matches everything. Matching is case-insensitive on
    trimmed values, so "article " selects records typed "Article".
    """

    publication_types: tuple[str, ...] = ()
    affiliations: tuple[str, ...] = ()
    faculty: str = ""
    _type_keys: frozenset[str] = field(init=False, repr=False, compare=False)
    _affiliation_keys: frozenset[str] = field(init=False, repr=False, compare=False)
    _faculty_key: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # matches() runs once per record; normalize the selections once
        object.__setattr__(self, "_type_keys", _normalized_set(self.publication_types))
        object.__setattr__(self, "_affiliation_keys", _normalized_set(self.affiliations))
        object.__setattr__(self, "_faculty_key", normalize_text(self.faculty))

    @classmethod
    def build(
        cls,
        publication_types: Iterable[str] | None = None,
        affiliations: Iterable[str] | None = None,
        faculty: str | None = None,
    ) -> CategoryFilters:
        """Drop placeholder/blank values so "no selection" means no filter."""

        def _clean(values: Iterable[str] | None) -> tuple[str, ...]:
            if not _normalized_set(values):
                return ()
            return tuple(str(v).strip() for v in values or () if str(v).strip())

        return cls(
            publication_types=_clean(publication_types),
            affiliations=_clean(affiliations),
            faculty=(faculty or "").strip(),
        )

    @property
    def active(self) -> bool:
        return bool(self.publication_types or self.affiliations or self.faculty)

    def matches(self, record: Record) -> bool:
        if self._type_keys and normalize_text(field_value(record, "publication_type")) not in self._type_keys:
            return False

        if self._affiliation_keys and normalize_text(field_value(record, "affiliation")) not in self._affiliation_keys:
            return False

        if self._faculty_key and normalize_text(field_value(record, "faculty")) != self._faculty_key:
            return False

        return True

    def category_count(self, period_filter: bool = False) -> int:
        """Number of filter categories in play, as shown in the report header."""
        return (
            int(period_filter)
            + int(bool(self.publication_types))
            + int(bool(self.affiliations))
            + int(bool(self.faculty))
        )

    def describe(self, start: int | None = None, end: int | None = None) -> str:
        """Human-readable "Filters applied" line."""
        parts: list[str] = []
        if self.faculty:
            parts.append(f"Faculty: {self.faculty}")
        if self.publication_types:
            parts.append(f"Types: {', '.join(self.publication_types)}")
        if self.affiliations:
            parts.append(f"Affiliations: {', '.join(self.affiliations)}")
        period_filter = start is not None and end is not None
        if period_filter:
            parts.append(f"Years: {start}–{end}")
        if not parts:
            return "Filters: none"
        return f"Filters applied: {' • '.join(parts)} (categories: {self.category_count(period_filter)})"

    def subject(self) -> str:
        """Short identifier used in generated file names."""
        if self.faculty:
            return self.faculty
        if self.publication_types:
            return "+".join(self.publication_types)
        return "ALL"
