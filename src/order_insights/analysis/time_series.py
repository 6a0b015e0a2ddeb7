"""Grouping and calendar-bucketed time series over normalized records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from order_insights.analysis.normalizer import normalize_records, parse_timestamp, safe_float

logger = logging.getLogger(__name__)

GRANULARITIES = ("day", "week", "month")


@dataclass
class TimeBucket:
    """Aggregate of one calendar period."""

    date: str  # bucket key, e.g. "2024-03", "2024-W09", "2024-03-01"
    count: int
    sum: float
    average: float
    min: float
    max: float


def group_by(records: list[dict], key_field: str) -> dict[str, list[dict]]:
    """Partition records by the stringified value of *key_field*.

    Records without the key (missing, None or empty string) are skipped.
    """
    if not records:
        return {}
    grouped: dict[str, list[dict]] = {}
    for row in records:
        key = row.get(key_field)
        if key is None or key == "":
            continue
        grouped.setdefault(str(key), []).append(row)
    return grouped


def bucket_key(moment: datetime, granularity: str = "day") -> str:
    """Return the sortable bucket key of *moment* for *granularity*.

    Weeks are ISO calendar weeks ("2024-W09"), keyed by ISO year, so week
    keys never merge across months and sort chronologically.
    """
    granularity = granularity.lower()
    if granularity == "month":
        return f"{moment.year:04d}-{moment.month:02d}"
    if granularity == "week":
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    return moment.date().isoformat()


def build_time_series(
    records: list[dict],
    time_field: str,
    value_field: str,
    granularity: str = "day",
) -> list[TimeBucket]:
    """Aggregate *value_field* into day/week/month buckets of *time_field*.

    Args:
        records: Raw or normalized records.
        time_field: Field holding the record timestamp.
        value_field: Field to aggregate; missing values count as 0.
        granularity: "day", "week" or "month". Anything else means "day".

    Returns:
        Buckets sorted ascending by key. Records whose time field is
        missing or cannot be parsed as a timestamp count as undated and
        are skipped.
    """
    rows = normalize_records(records)
    if not rows:
        return []

    if granularity.lower() not in GRANULARITIES:
        logger.debug("Unknown granularity %r, using day buckets", granularity)
        granularity = "day"

    groups: dict[str, list[float]] = {}
    skipped = 0
    for row in rows:
        moment = parse_timestamp(row.get(time_field))
        if moment is None:
            skipped += 1
            continue
        value = safe_float(row.get(value_field)) or 0.0
        groups.setdefault(bucket_key(moment, granularity), []).append(value)

    if skipped:
        logger.debug("Skipped %d records without %s", skipped, time_field)

    series = []
    for key in sorted(groups):
        values = groups[key]
        total = sum(values)
        series.append(TimeBucket(
            date=key,
            count=len(values),
            sum=total,
            average=total / len(values),
            min=min(values),
            max=max(values),
        ))
    return series
