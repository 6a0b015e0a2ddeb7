"""Record normalizer -- coerce raw store records into typed values.

Records arrive from the store as flat dicts whose values are usually
strings. Numeric-looking strings become floats and timestamp-like fields
become timezone-aware datetimes. The input collection is never modified.
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

_TIMESTAMP_MARKERS = ("date", "created_at", "updated_at", "timestamp")

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def safe_float(value) -> float | None:
    """Convert a value to float, returning None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse a value into a timezone-aware UTC datetime.

    Naive values are taken to be UTC. Returns None when the value cannot
    be interpreted as a point in time.
    """
    if isinstance(value, datetime):
        return _to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    try:
        return _to_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return _to_utc(datetime.strptime(s, fmt))
        except ValueError:
            continue
    return None


def is_identifier_field(field: str) -> bool:
    """True for id, name and code columns that must stay strings."""
    return (
        field == "id"
        or field.endswith("_id")
        or "name" in field
        or "code" in field
    )


def is_timestamp_field(field: str) -> bool:
    return any(marker in field for marker in _TIMESTAMP_MARKERS)


def _numeric_string(value: str) -> float | None:
    s = value.strip()
    if not s:
        return None
    try:
        result = float(s)
    except ValueError:
        return None
    if not math.isfinite(result):
        return None
    return result


def _normalize_value(field: str, value):
    if not isinstance(value, str):
        return value
    if not is_identifier_field(field):
        number = _numeric_string(value)
        if number is not None:
            return number
    if is_timestamp_field(field):
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_records(records) -> list[dict]:
    """Return a typed copy of *records*.

    Args:
        records: Sequence of flat record mappings as read from the store.

    Returns:
        A new list of dicts. Empty when *records* is None, empty, or not a
        sequence at all, which callers treat as insufficient data.

    Raises:
        TypeError: if an element of the sequence is not a mapping.
    """
    if records is None:
        logger.warning("No records provided for normalization")
        return []
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
        logger.warning(
            "Expected a sequence of records, got %s; treating as empty",
            type(records).__name__,
        )
        return []
    if not records:
        return []

    logger.debug("Normalizing %d records", len(records))
    normalized: list[dict] = []
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise TypeError(
                f"Record {index} is {type(record).__name__}, expected a mapping"
            )
        row = copy.deepcopy(dict(record))
        for field, value in row.items():
            row[field] = _normalize_value(str(field), value)
        normalized.append(row)
    return normalized
