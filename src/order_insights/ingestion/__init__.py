"""Record sources feeding the analysis engine."""

from order_insights.ingestion.csv_source import CsvRecordSource
from order_insights.ingestion.record_source import (
    RECORD_TYPES,
    InMemoryRecordSource,
    RecordSource,
    UnknownRecordTypeError,
)

__all__ = [
    "RECORD_TYPES",
    "CsvRecordSource",
    "InMemoryRecordSource",
    "RecordSource",
    "UnknownRecordTypeError",
]
