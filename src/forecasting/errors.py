"""Exception types raised by the forecasting pipeline."""

from __future__ import annotations


class ForecastError(Exception):
    """Base class for forecasting pipeline failures."""


class EmptyDatasetError(ForecastError, ValueError):
    """No valid sales records survived encoding."""


class TrainingError(ForecastError, RuntimeError):
    """Model training did not converge to finite weights."""


class TrainingCancelled(ForecastError, RuntimeError):
    """Training was aborted before completing every epoch."""


class UntrainedModelError(ForecastError):
    """A model that did not finish training was handed to inference."""


class PipelineBusyError(ForecastError):
    """A forecast run is already in flight."""
