"""Stateless helpers shaping forecast records for a chart renderer."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .forecaster import ForecastRecord

SERIES_NAME = "Predicted Sales"
X_LABEL = "Month"
Y_LABEL = "Quantity Sold"


def product_options(records: Iterable[ForecastRecord]) -> List[str]:
    """Distinct products in the order they first appear."""
    return list(dict.fromkeys(record.product for record in records))


def default_product(records: Sequence[ForecastRecord]) -> Optional[str]:
    return records[0].product if records else None


def filter_by_product(
    records: Iterable[ForecastRecord], product: Optional[str]
) -> List[ForecastRecord]:
    """Return records for ``product``; unknown products give an empty list."""
    return [record for record in records if record.product == product]


def chart_series(records: Iterable[ForecastRecord], product: Optional[str]) -> Dict[str, Any]:
    """Build the line-chart payload for a single product selection."""
    selected = filter_by_product(records, product)
    values = [{"x": record.period_label, "y": record.prediction} for record in selected]
    predictions = [record.prediction for record in selected]
    return {
        "values": values,
        "series": [SERIES_NAME],
        "x_label": X_LABEL,
        "y_label": Y_LABEL,
        "y_axis_domain": [min(predictions), max(predictions)] if predictions else None,
    }
