"""End-to-end forecast pipeline and its single-flight asynchronous runner."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Tuple

from . import normalization
from .encoding import IndexMap, RawRecord, encode
from .errors import EmptyDatasetError, PipelineBusyError, TrainingCancelled
from .forecaster import (
    DEFAULT_HORIZON,
    DEFAULT_PERIOD_FREQ,
    ForecastRecord,
    forecast,
    future_period_labels,
)
from .model import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_EPOCHS,
    DEFAULT_HIDDEN_UNITS,
    DEFAULT_LEARNING_RATE,
    ProgressCallback,
    TrainingConfig,
    train,
)
from .normalization import NormalizationBounds

logger = logging.getLogger(__name__)


def _parse_hidden_units(value: str) -> Tuple[int, ...]:
    return tuple(int(token) for token in value.split(",") if token.strip())


@dataclass(frozen=True, slots=True)
class ForecastConfig:
    """Tunable settings for :func:`run_forecast_pipeline`."""

    horizon: int = DEFAULT_HORIZON
    epochs: int = DEFAULT_EPOCHS
    hidden_units: Tuple[int, ...] = DEFAULT_HIDDEN_UNITS
    learning_rate: float = DEFAULT_LEARNING_RATE
    batch_size: int = DEFAULT_BATCH_SIZE
    seed: Optional[int] = None
    period_freq: str = DEFAULT_PERIOD_FREQ

    def __post_init__(self) -> None:
        if self.horizon < 1:
            raise ValueError("horizon must be at least 1.")
        self.training_config()

    def training_config(self) -> TrainingConfig:
        return TrainingConfig(
            epochs=self.epochs,
            hidden_units=tuple(self.hidden_units),
            learning_rate=self.learning_rate,
            batch_size=self.batch_size,
            seed=self.seed,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ForecastConfig":
        """Build a config from ``FORECAST_*`` environment variables."""
        env = os.environ if environ is None else environ
        seed = env.get("FORECAST_SEED", "").strip()
        return cls(
            horizon=int(env.get("FORECAST_HORIZON", DEFAULT_HORIZON)),
            epochs=int(env.get("FORECAST_EPOCHS", DEFAULT_EPOCHS)),
            hidden_units=_parse_hidden_units(
                env.get("FORECAST_HIDDEN_UNITS", ",".join(map(str, DEFAULT_HIDDEN_UNITS)))
            ),
            learning_rate=float(env.get("FORECAST_LEARNING_RATE", DEFAULT_LEARNING_RATE)),
            batch_size=int(env.get("FORECAST_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
            seed=int(seed) if seed else None,
            period_freq=env.get("FORECAST_PERIOD_FREQ", DEFAULT_PERIOD_FREQ),
        )


@dataclass(slots=True)
class ForecastResult:
    """Everything a presentation layer needs from one pipeline run."""

    records: List[ForecastRecord]
    products: Tuple[str, ...]
    bounds: NormalizationBounds
    date_map: IndexMap
    product_map: IndexMap
    dropped_records: int = 0
    loss_history: List[float] = field(default_factory=list)


def run_forecast_pipeline(
    rows: Iterable[RawRecord],
    config: Optional[ForecastConfig] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressCallback] = None,
) -> ForecastResult:
    """Encode, normalize, train and forecast in one sequential pass.

    Raises :class:`EmptyDatasetError` before normalization when no row carries
    a usable quantity.
    """
    config = config or ForecastConfig()
    rows = list(rows)

    examples, date_map, product_map = encode(rows)
    dropped = len(rows) - len(examples)
    if not examples:
        raise EmptyDatasetError(
            f"No valid sales records to forecast from ({dropped} row(s) dropped)."
        )

    bounds = normalization.fit(examples)
    if bounds.degenerate:
        logger.info(
            "Every quantity equals %s; normalized labels are fixed at 0.", bounds.min_quantity
        )
    normalized = normalization.transform(examples, bounds)
    period_labels = future_period_labels(date_map, config.horizon, config.period_freq)

    model = train(
        normalized,
        config.training_config(),
        cancel_event=cancel_event,
        progress=progress,
    )
    records = forecast(
        model,
        date_map,
        product_map,
        bounds,
        config.horizon,
        period_labels=period_labels,
    )

    return ForecastResult(
        records=records,
        products=tuple(str(token) for token in product_map.tokens()),
        bounds=bounds,
        date_map=date_map,
        product_map=product_map,
        dropped_records=dropped,
        loss_history=list(model.loss_history),
    )


class RunState(str, Enum):
    IDLE = "idle"
    TRAINING = "training"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ForecastRunner:
    """Run the forecast pipeline in the background, one run at a time.

    ``submit`` while a run is in flight raises :class:`PipelineBusyError`
    instead of queueing. ``state`` moves ``idle -> training`` and then to
    ``ready``, ``failed`` or ``cancelled``; ``result`` is only set on ``ready``.
    """

    def __init__(self, config: Optional[ForecastConfig] = None) -> None:
        self._config = config or ForecastConfig()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="forecast")
        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._progress = 0.0
        self._result: Optional[ForecastResult] = None
        self._error: Optional[BaseException] = None
        self._cancel_event: Optional[threading.Event] = None

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def result(self) -> Optional[ForecastResult]:
        with self._lock:
            return self._result

    @property
    def error(self) -> Optional[BaseException]:
        with self._lock:
            return self._error

    @property
    def busy(self) -> bool:
        return self.state is RunState.TRAINING

    def submit(
        self, rows: Iterable[RawRecord], config: Optional[ForecastConfig] = None
    ) -> "Future[ForecastResult]":
        """Start a pipeline run and return a future for its result."""
        snapshot = list(rows)
        with self._lock:
            if self._state is RunState.TRAINING:
                raise PipelineBusyError("A forecast run is already in progress.")
            cancel_event = threading.Event()
            # Workers take the lock in _finish, so they observe TRAINING first.
            future = self._executor.submit(
                self._run, snapshot, config or self._config, cancel_event
            )
            self._state = RunState.TRAINING
            self._progress = 0.0
            self._result = None
            self._error = None
            self._cancel_event = cancel_event
            return future

    def cancel(self) -> bool:
        """Ask the in-flight run to stop at the next epoch boundary."""
        with self._lock:
            if self._state is not RunState.TRAINING or self._cancel_event is None:
                return False
            self._cancel_event.set()
            return True

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ForecastRunner":
        return self

    def __exit__(self, *_: object) -> None:
        self.shutdown()

    def _on_progress(self, epoch: int, epochs: int, loss: float) -> None:
        with self._lock:
            self._progress = epoch / epochs

    def _finish(
        self,
        state: RunState,
        *,
        result: Optional[ForecastResult] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        with self._lock:
            self._state = state
            self._result = result
            self._error = error
            if state is RunState.READY:
                self._progress = 1.0

    def _run(
        self, rows: List[RawRecord], config: ForecastConfig, cancel_event: threading.Event
    ) -> ForecastResult:
        try:
            result = run_forecast_pipeline(
                rows, config, cancel_event=cancel_event, progress=self._on_progress
            )
        except TrainingCancelled as exc:
            logger.warning("Forecast run cancelled: %s", exc)
            self._finish(RunState.CANCELLED, error=exc)
            raise
        except Exception as exc:
            logger.error("Forecast run failed: %s", exc)
            self._finish(RunState.FAILED, error=exc)
            raise
        self._finish(RunState.READY, result=result)
        return result
