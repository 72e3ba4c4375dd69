"""Record field access and the normalized dedup key."""

from __future__ import annotations

import math
from typing import Any

from models import NormalizedKey, Record

# The data service has shipped display-cased column names ("Publication Type")
# as well as camelCase ones over time; the display name wins when both exist.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "ID"),
    "entry_date": ("Entry Date", "entryDate"),
    "faculty": ("Faculty", "faculty"),
    "publication_type": ("Publication Type", "publicationType"),
    "period": ("Year", "year"),
    "title": ("Title", "title"),
    "role": ("Role", "role"),
    "affiliation": ("Affiliation", "affiliation"),
    "status": ("Status", "status"),
    "reference": ("Reference", "reference"),
    "theme": ("Theme", "theme"),
}

MISSING_TITLE = "missing_title"
BAD_PERIOD = "bad_period"


def field_value(record: Record, name: str) -> Any:
    """Return the first non-None value among the aliases of ``name``."""
    for key in FIELD_ALIASES.get(name, (name,)):
        value = record.get(key)
        if value is not None:
            return value
    return None


def field_text(record: Record, name: str) -> str:
    value = field_value(record, name)
    return "" if value is None else str(value).strip()


def normalize_text(value: Any) -> str:
    return "" if value is None else str(value).strip().lower()


def coerce_period(value: Any) -> int | None:
    """Coerce a raw period to an int, or None when it is not a whole number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def key_rejection_reason(record: Record) -> str | None:
    """Explain why ``normalized_key`` would reject the record, if it would."""
    if coerce_period(field_value(record, "period")) is None:
        return BAD_PERIOD
    if not field_text(record, "title"):
        return MISSING_TITLE
    return None


def normalized_key(record: Record) -> NormalizedKey | None:
    """Build the (period, normalized title) key, or None if the record is noise."""
    period = coerce_period(field_value(record, "period"))
    if period is None:
        return None
    title = normalize_text(field_value(record, "title"))
    if not title:
        return None
    return NormalizedKey(period=period, title=title)
