"""CSV exports of the record store as a record source."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import pandas as pd

from order_insights.ingestion.record_source import check_record_type, filter_by_date

logger = logging.getLogger(__name__)


def read_records(path: Path) -> list[dict]:
    """Read a CSV file into string-valued records.

    Every cell is kept as text, exactly as the store exported it; empty
    cells are left out of the record.
    """
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        logger.info("CSV %s is empty", path.name)
        return []
    records = []
    for row in df.to_dict(orient="records"):
        records.append({k: v for k, v in row.items() if v != ""})
    return records


class CsvRecordSource:
    """Reads ``orders.csv``, ``items.csv`` and ``users.csv`` from a directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_for(self, record_type: str) -> Path:
        return self.directory / f"{check_record_type(record_type)}.csv"

    def fetch(
        self,
        record_type: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict]:
        path = self.path_for(record_type)
        if not path.exists():
            logger.warning("No %s export at %s", record_type, path)
            return []
        rows = filter_by_date(read_records(path), start, end)
        logger.info("Loaded %d %s records from %s", len(rows), record_type, path.name)
        return rows
