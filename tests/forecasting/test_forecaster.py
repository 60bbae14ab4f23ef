import pytest
import torch

from src.forecasting.encoding import IndexMap
from src.forecasting.errors import EmptyDatasetError
from src.forecasting.forecaster import (
    FORECAST_COLUMNS,
    build_future_features,
    forecast,
    forecast_to_frame,
    future_period_labels,
)
from src.forecasting.model import SalesRegressor, TrainedModel
from src.forecasting.normalization import NormalizationBounds


def _constant_model(output: float) -> TrainedModel:
    network = SalesRegressor((4, 4, 4))
    with torch.no_grad():
        for parameter in network.parameters():
            parameter.zero_()
        network.layers[-1].bias.fill_(output)
    return TrainedModel(network=network, epochs_requested=1, epochs_completed=1)


def _maps() -> tuple[IndexMap, IndexMap]:
    return (
        IndexMap(["2024-01", "2024-02", "2024-03"]).freeze(),
        IndexMap(["Widget", "Gadget"]).freeze(),
    )


def test_build_future_features_starts_after_last_index() -> None:
    date_map, product_map = _maps()

    features = build_future_features(date_map, product_map, horizon=2)

    assert features == [(3, 0), (3, 1), (4, 0), (4, 1)]


def test_forecast_emits_horizon_times_products_records() -> None:
    date_map, product_map = _maps()
    bounds = NormalizationBounds(min_quantity=10.0, max_quantity=20.0)

    records = forecast(_constant_model(0.5), date_map, product_map, bounds, horizon=6)

    assert len(records) == 6 * len(product_map)
    assert {record.product for record in records} <= set(product_map.tokens())
    assert all(record.prediction == pytest.approx(15.0) for record in records)
    assert [record.period_label for record in records[:4]] == [
        "2024-04",
        "2024-04",
        "2024-05",
        "2024-05",
    ]
    assert records[-1].date_index == 8


def test_forecast_clamps_negative_predictions_to_zero() -> None:
    date_map, product_map = _maps()
    bounds = NormalizationBounds(min_quantity=0.0, max_quantity=100.0)

    records = forecast(_constant_model(-50.0), date_map, product_map, bounds, horizon=3)

    assert records
    assert all(record.prediction == 0.0 for record in records)


def test_forecast_degenerate_bounds_returns_min() -> None:
    date_map, product_map = _maps()
    bounds = NormalizationBounds(min_quantity=5.0, max_quantity=5.0)

    records = forecast(_constant_model(0.8), date_map, product_map, bounds, horizon=2)

    assert all(record.prediction == 5.0 for record in records)


def test_forecast_requires_dates() -> None:
    bounds = NormalizationBounds(min_quantity=0.0, max_quantity=1.0)

    with pytest.raises(EmptyDatasetError):
        forecast(_constant_model(0.1), IndexMap(), IndexMap(["Widget"]), bounds, horizon=1)


def test_period_labels_follow_latest_calendar_month() -> None:
    date_map = IndexMap(["2024-11", "2023-12", "2024-12"])

    assert future_period_labels(date_map, 3) == ["2025-01", "2025-02", "2025-03"]


def test_period_labels_fall_back_to_last_token() -> None:
    date_map = IndexMap(["week one", "week two"])

    assert future_period_labels(date_map, 2) == ["week two+1", "week two+2"]


def test_forecast_to_frame_columns() -> None:
    date_map, product_map = _maps()
    bounds = NormalizationBounds(min_quantity=0.0, max_quantity=10.0)
    records = forecast(_constant_model(0.2), date_map, product_map, bounds, horizon=1)

    frame = forecast_to_frame(records)

    assert list(frame.columns) == list(FORECAST_COLUMNS)
    assert frame["product"].tolist() == ["Widget", "Gadget"]
    assert frame["prediction"].tolist() == pytest.approx([2.0, 2.0])


@pytest.mark.parametrize(
    "tokens",
    [
        ["2024-01-01T00:00:00+01:00", "2024-02-01T00:00:00+02:00"],
        ["2024-01-01", "2024-02-01T00:00:00Z"],
    ],
)
def test_period_labels_handle_mixed_timezones(tokens: list[str]) -> None:
    assert future_period_labels(IndexMap(tokens), 2) == ["2024-03", "2024-04"]


def test_period_labels_ignore_blank_date_placeholder() -> None:
    date_map = IndexMap(["2024-01", "UNSPECIFIED", "2024-02"])

    assert future_period_labels(date_map, 2) == ["2024-03", "2024-04"]


def test_forecast_uses_supplied_period_labels() -> None:
    date_map, product_map = _maps()
    bounds = NormalizationBounds(min_quantity=0.0, max_quantity=10.0)

    records = forecast(
        _constant_model(0.2), date_map, product_map, bounds, horizon=2, period_labels=["P1", "P2"]
    )

    assert [record.period_label for record in records] == ["P1", "P1", "P2", "P2"]
    with pytest.raises(ValueError):
        forecast(_constant_model(0.2), date_map, product_map, bounds, horizon=2, period_labels=["P1"])
