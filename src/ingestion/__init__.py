"""Data ingestion utilities for the sales forecasting pipeline."""

from .sales_records import (
    DEFAULT_COLUMN_MAP,
    SalesRecordsConfig,
    load_sales_frame,
    load_sales_records,
    records_from_frame,
)

__all__ = [
    "DEFAULT_COLUMN_MAP",
    "SalesRecordsConfig",
    "load_sales_frame",
    "load_sales_records",
    "records_from_frame",
]
