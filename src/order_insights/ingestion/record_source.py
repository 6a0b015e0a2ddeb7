"""Record sources -- where the engine pulls orders, items and users from."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from order_insights.analysis.normalizer import parse_timestamp

logger = logging.getLogger(__name__)

RECORD_TYPES = ("orders", "items", "users")


class UnknownRecordTypeError(ValueError):
    """Raised when a record type other than orders/items/users is requested."""


class RecordSource(Protocol):
    def fetch(
        self,
        record_type: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict]:
        """Return flat records of *record_type*, optionally within [start, end]."""
        ...


def check_record_type(record_type: str) -> str:
    if record_type not in RECORD_TYPES:
        raise UnknownRecordTypeError(
            f"Invalid record type: {record_type!r} (expected one of {', '.join(RECORD_TYPES)})"
        )
    return record_type


def filter_by_date(
    records: list[dict],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict]:
    """Keep records whose date (or created_at) falls within [start, end].

    Both bounds are inclusive. With no bounds every record is kept; with
    any bound, records without a parseable timestamp are dropped.
    """
    if start is None and end is None:
        return list(records)
    start = parse_timestamp(start) if start is not None else None
    end = parse_timestamp(end) if end is not None else None

    kept = []
    for row in records:
        moment = parse_timestamp(row.get("date") or row.get("created_at"))
        if moment is None:
            continue
        if start is not None and moment < start:
            continue
        if end is not None and moment > end:
            continue
        kept.append(row)
    return kept


class InMemoryRecordSource:
    """Record source backed by lists held in memory."""

    def __init__(
        self,
        orders: list[dict] | None = None,
        items: list[dict] | None = None,
        users: list[dict] | None = None,
    ) -> None:
        self._records: dict[str, list[dict]] = {
            "orders": list(orders or []),
            "items": list(items or []),
            "users": list(users or []),
        }

    def fetch(
        self,
        record_type: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict]:
        check_record_type(record_type)
        rows = filter_by_date(self._records[record_type], start, end)
        logger.debug("Fetched %d %s records", len(rows), record_type)
        return [dict(row) for row in rows]
