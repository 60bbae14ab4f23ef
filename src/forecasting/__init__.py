"""Forecasting entry points for the sales forecaster."""

from .encoding import IndexMap, RawRecord, TrainingExample, encode, parse_quantity
from .errors import (
    EmptyDatasetError,
    ForecastError,
    PipelineBusyError,
    TrainingCancelled,
    TrainingError,
    UntrainedModelError,
)
from .forecaster import ForecastRecord, forecast, forecast_to_frame
from .model import TrainedModel, TrainingConfig, predict, train
from .normalization import NormalizationBounds, fit, invert, transform
from .pipeline import ForecastConfig, ForecastResult, ForecastRunner, RunState, run_forecast_pipeline

__all__ = [
    "EmptyDatasetError",
    "ForecastConfig",
    "ForecastError",
    "ForecastRecord",
    "ForecastResult",
    "ForecastRunner",
    "IndexMap",
    "NormalizationBounds",
    "PipelineBusyError",
    "RawRecord",
    "RunState",
    "TrainedModel",
    "TrainingCancelled",
    "TrainingConfig",
    "TrainingError",
    "TrainingExample",
    "UntrainedModelError",
    "encode",
    "fit",
    "forecast",
    "forecast_to_frame",
    "invert",
    "parse_quantity",
    "predict",
    "run_forecast_pipeline",
    "train",
    "transform",
]
