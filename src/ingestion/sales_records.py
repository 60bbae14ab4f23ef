"""Load tabular sales exports into raw records for the forecast pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping

import pandas as pd

from src.forecasting.encoding import MISSING_TOKEN, RawRecord

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_MAP: Dict[str, str] = {
    "created": "sales_date",
    "short_desc": "product_description",
    "total_sold": "quantity_sold",
}
RECORD_FIELDS: tuple[str, ...] = ("sales_date", "product_description", "quantity_sold")
EXCEL_SUFFIXES = {".xlsx", ".xls"}


@dataclass
class SalesRecordsConfig:
    """Configuration for :func:`load_sales_records`."""

    source_path: Path
    column_map: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_COLUMN_MAP))
    sheet_name: str | int = 0
    engine: str | None = None


def load_sales_frame(config: SalesRecordsConfig) -> pd.DataFrame:
    """Read the configured CSV or Excel export as strings."""
    path = Path(config.source_path)
    if not path.exists():
        raise FileNotFoundError(f"Sales export not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        frame = pd.read_csv(path, dtype=str)
    elif suffix in EXCEL_SUFFIXES:
        frame = pd.read_excel(
            path, sheet_name=config.sheet_name, engine=config.engine, dtype=str
        )
    else:
        raise ValueError(f"Unsupported sales export format '{suffix}': {path.name}")

    logger.info("Loaded %d sales row(s) from %s", len(frame), path)
    return frame.rename(columns=str.strip)


def records_from_frame(
    frame: pd.DataFrame, column_map: Mapping[str, str] = DEFAULT_COLUMN_MAP
) -> List[RawRecord]:
    """Convert ``frame`` into :class:`RawRecord` objects.

    Token columns are stripped and blanks become ``UNSPECIFIED``; quantities are
    passed through untouched for the encoder to validate.
    """
    missing_fields = set(RECORD_FIELDS) - set(column_map.values())
    if missing_fields:
        raise ValueError(f"Column map does not cover: {', '.join(sorted(missing_fields))}")

    missing_columns = [column for column in column_map if column not in frame.columns]
    if missing_columns:
        raise ValueError(
            f"Sales export is missing columns: {', '.join(missing_columns)}. "
            f"Available columns: {', '.join(map(str, frame.columns))}"
        )

    working = frame.loc[:, list(column_map)].rename(columns=dict(column_map))
    for token_column in ("sales_date", "product_description"):
        tokens = working[token_column].astype("string").str.strip()
        working[token_column] = tokens.replace("", pd.NA).fillna(MISSING_TOKEN).astype(str)
    quantities = working["quantity_sold"].tolist()

    return [
        RawRecord(sales_date=date, product_description=product, quantity_sold=quantity)
        for date, product, quantity in zip(
            working["sales_date"], working["product_description"], quantities
        )
    ]


def load_sales_records(config: SalesRecordsConfig) -> List[RawRecord]:
    """Convenience wrapper returning records straight from disk."""
    return records_from_frame(load_sales_frame(config), config.column_map)
