from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from src.forecasting.encoding import RawRecord, encode
from src.ingestion import SalesRecordsConfig, load_sales_records, records_from_frame


def test_load_sales_records_from_csv(tmp_path: Path) -> None:
    source = tmp_path / "sales.csv"
    pd.DataFrame(
        {
            "created": ["2024-01", "2024-02", "2024-02"],
            "short_desc": [" Widget ", "Widget", None],
            "total_sold": ["10", "abc", "3"],
            "store": ["A", "B", "C"],
        }
    ).to_csv(source, index=False)

    records = load_sales_records(SalesRecordsConfig(source_path=source))

    assert records[0] == RawRecord("2024-01", "Widget", "10")
    assert records[1].quantity_sold == "abc"
    assert records[2].product_description == "UNSPECIFIED"

    examples, date_map, product_map = encode(records)
    assert len(examples) == 2
    assert product_map.tokens() == ("Widget", "UNSPECIFIED")


def test_load_sales_records_from_excel(tmp_path: Path) -> None:
    workbook = tmp_path / "sales.xlsx"
    pd.DataFrame(
        {"created": ["2024-01"], "short_desc": ["Gadget"], "total_sold": [4]}
    ).to_excel(workbook, sheet_name="Sales", index=False)

    records = load_sales_records(SalesRecordsConfig(source_path=workbook, sheet_name="Sales"))

    assert len(records) == 1
    assert records[0].product_description == "Gadget"
    assert float(records[0].quantity_sold) == 4.0


def test_records_from_frame_with_custom_column_map() -> None:
    frame = pd.DataFrame({"Month": ["2024-05"], "SKU": ["DS220j"], "Qty": [8]})

    records = records_from_frame(
        frame,
        {"Month": "sales_date", "SKU": "product_description", "Qty": "quantity_sold"},
    )

    assert records == [RawRecord("2024-05", "DS220j", 8)]


def test_records_from_frame_raises_when_columns_missing() -> None:
    frame = pd.DataFrame({"created": ["2024-01"], "total_sold": [1]})

    with pytest.raises(ValueError, match="missing columns: short_desc"):
        records_from_frame(frame)


def test_load_sales_records_rejects_missing_and_unsupported(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_sales_records(SalesRecordsConfig(source_path=tmp_path / "absent.csv"))

    unsupported = tmp_path / "sales.json"
    unsupported.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported"):
        load_sales_records(SalesRecordsConfig(source_path=unsupported))
