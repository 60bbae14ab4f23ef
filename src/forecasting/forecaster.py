"""Turn a trained model into per-product forecasts for upcoming periods."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .encoding import MISSING_TOKEN, IndexMap
from .errors import EmptyDatasetError
from .model import TrainedModel, predict
from .normalization import NormalizationBounds, invert

logger = logging.getLogger(__name__)

DEFAULT_HORIZON = 6
DEFAULT_PERIOD_FREQ = "M"
FORECAST_COLUMNS: tuple[str, ...] = ("period_label", "product", "prediction", "date_index")


@dataclass(frozen=True, slots=True)
class ForecastRecord:
    """Predicted quantity for one product in one future period."""

    period_label: str
    product: str
    prediction: float
    date_index: int


def _calendar_period(token: object, freq: str) -> Optional[pd.Period]:
    try:
        stamp = pd.to_datetime(str(token), errors="coerce")
    except (TypeError, ValueError):
        return None
    if pd.isna(stamp):
        return None
    if stamp.tzinfo is not None:
        stamp = stamp.tz_localize(None)
    return stamp.to_period(freq)


def _calendar_periods(tokens: Sequence[object], freq: str) -> Optional[List[pd.Period]]:
    dated = [token for token in tokens if token != MISSING_TOKEN]
    periods = [_calendar_period(token, freq) for token in dated]
    if not periods or any(period is None for period in periods):
        return None
    return periods


def future_period_labels(
    date_map: IndexMap, horizon: int, freq: str = DEFAULT_PERIOD_FREQ
) -> List[str]:
    """Label the ``horizon`` periods that follow the observed date tokens.

    Calendar-parsable tokens are advanced by ``freq`` from the latest observed
    period. Offsets are dropped so each token keeps its own wall-clock date, and
    blank-date placeholders are ignored. Anything else falls back to
    ``"<token>+k"`` anchored on the token holding the highest index.
    """
    tokens = date_map.tokens()
    if not tokens:
        raise EmptyDatasetError("No date tokens available to derive forecast periods.")

    periods = _calendar_periods(tokens, freq)
    if periods is not None:
        latest = max(periods)
        return [str(latest + step) for step in range(1, horizon + 1)]

    anchor = tokens[-1]
    logger.warning(
        "Date tokens are not calendar dates; labelling forecast periods relative to %r.",
        anchor,
    )
    return [f"{anchor}+{step}" for step in range(1, horizon + 1)]


def build_future_features(
    date_map: IndexMap, product_map: IndexMap, horizon: int
) -> List[Tuple[int, int]]:
    """Return ``(future_date_index, product_index)`` pairs, period-major."""
    last_index = date_map.max_index()
    if last_index is None:
        raise EmptyDatasetError("Date index map is empty; nothing to forecast from.")

    next_index = last_index + 1
    return [
        (next_index + offset, product_index)
        for offset in range(horizon)
        for product_index in product_map.indices()
    ]


def forecast(
    model: TrainedModel,
    date_map: IndexMap,
    product_map: IndexMap,
    bounds: NormalizationBounds,
    horizon: int = DEFAULT_HORIZON,
    *,
    period_freq: str = DEFAULT_PERIOD_FREQ,
    period_labels: Optional[Sequence[str]] = None,
) -> List[ForecastRecord]:
    """Predict every known product for ``horizon`` periods past the training data.

    Predictions are de-normalized with ``bounds`` and clamped at zero.
    ``period_labels`` overrides the labels derived from ``date_map``.
    """
    if horizon < 1:
        raise ValueError("horizon must be at least 1.")

    features = build_future_features(date_map, product_map, horizon)
    if period_labels is None:
        labels = future_period_labels(date_map, horizon, period_freq)
    else:
        labels = list(period_labels)
        if len(labels) != horizon:
            raise ValueError(f"Expected {horizon} period label(s), got {len(labels)}.")
    first_index = date_map.max_index() + 1
    raw = predict(model, features)

    records = [
        ForecastRecord(
            period_label=labels[date_index - first_index],
            product=str(product_map.token_at(product_index)),
            prediction=max(invert(float(value), bounds), 0.0),
            date_index=date_index,
        )
        for (date_index, product_index), value in zip(features, raw)
    ]
    logger.info(
        "Forecast %d record(s) for %d product(s) over %d period(s).",
        len(records),
        len(product_map),
        horizon,
    )
    return records


def forecast_to_frame(records: Iterable[ForecastRecord]) -> pd.DataFrame:
    """Tabulate forecast records for export."""
    return pd.DataFrame([asdict(record) for record in records], columns=list(FORECAST_COLUMNS))
