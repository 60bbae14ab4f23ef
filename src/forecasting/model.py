"""Feed-forward regression model mapping encoded features to normalized sales."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim

from .encoding import TrainingExample
from .errors import EmptyDatasetError, TrainingCancelled, TrainingError, UntrainedModelError

logger = logging.getLogger(__name__)

INPUT_WIDTH = 2
DEFAULT_HIDDEN_UNITS: tuple[int, ...] = (128, 64, 32)
DEFAULT_EPOCHS = 300
DEFAULT_LEARNING_RATE = 0.001
DEFAULT_BATCH_SIZE = 32

ProgressCallback = Callable[[int, int, float], None]


@dataclass(frozen=True, slots=True)
class TrainingConfig:
    """Hyperparameters for :func:`train`."""

    epochs: int = DEFAULT_EPOCHS
    hidden_units: Tuple[int, ...] = DEFAULT_HIDDEN_UNITS
    learning_rate: float = DEFAULT_LEARNING_RATE
    batch_size: int = DEFAULT_BATCH_SIZE
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.epochs < 1:
            raise ValueError("epochs must be at least 1.")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        if self.learning_rate <= 0:
            raise ValueError("learning_rate must be positive.")
        if not self.hidden_units or any(units < 1 for units in self.hidden_units):
            raise ValueError("hidden_units must list one or more positive layer widths.")


class SalesRegressor(nn.Module):
    """Dense ReLU stack with a single linear output unit."""

    def __init__(self, hidden_units: Sequence[int] = DEFAULT_HIDDEN_UNITS) -> None:
        super().__init__()
        layers: List[nn.Module] = []
        width = INPUT_WIDTH
        for units in hidden_units:
            layers.append(nn.Linear(width, units))
            layers.append(nn.ReLU())
            width = units
        layers.append(nn.Linear(width, 1))
        self.layers = nn.Sequential(*layers)
        self.hidden_units = tuple(hidden_units)

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        return self.layers(features)


@dataclass(slots=True)
class TrainedModel:
    """A fitted network together with its training record."""

    network: SalesRegressor
    epochs_requested: int
    epochs_completed: int
    loss_history: List[float] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.epochs_completed >= self.epochs_requested

    @property
    def final_loss(self) -> Optional[float]:
        return self.loss_history[-1] if self.loss_history else None


def set_random_seed(seed: int) -> None:
    """Seed numpy and torch so initialization and shuffling repeat."""
    np.random.seed(seed)
    torch.manual_seed(seed)


def build_model(hidden_units: Sequence[int] = DEFAULT_HIDDEN_UNITS) -> SalesRegressor:
    return SalesRegressor(hidden_units)


def _to_tensors(examples: Sequence[TrainingExample]) -> Tuple[torch.Tensor, torch.Tensor]:
    features = torch.tensor([example.features for example in examples], dtype=torch.float32)
    targets = torch.tensor([[example.label] for example in examples], dtype=torch.float32)
    return features, targets


def train(
    examples: Sequence[TrainingExample],
    config: Optional[TrainingConfig] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressCallback] = None,
) -> TrainedModel:
    """Fit a :class:`SalesRegressor` on normalized examples with Adam and MSE loss.

    Every epoch covers the full dataset in shuffled mini-batches; there is no
    validation split and no early stopping. A non-finite loss raises
    :class:`TrainingError` and a set ``cancel_event`` raises
    :class:`TrainingCancelled`, so a partially trained network is never
    returned.
    """
    config = config or TrainingConfig()
    if not examples:
        raise EmptyDatasetError("Cannot train a model on zero examples.")

    if config.seed is not None:
        set_random_seed(config.seed)

    network = build_model(config.hidden_units)
    features, targets = _to_tensors(examples)
    optimizer = optim.Adam(network.parameters(), lr=config.learning_rate)
    criterion = nn.MSELoss()

    n_samples = features.shape[0]
    history: List[float] = []
    logger.info(
        "Training %s on %d example(s) for %d epoch(s).",
        "x".join(str(units) for units in config.hidden_units),
        n_samples,
        config.epochs,
    )

    for epoch in range(config.epochs):
        if cancel_event is not None and cancel_event.is_set():
            raise TrainingCancelled(f"Training cancelled after {epoch} epoch(s).")

        network.train()
        permutation = torch.randperm(n_samples)
        total_loss = 0.0
        for start in range(0, n_samples, config.batch_size):
            batch = permutation[start : start + config.batch_size]

            optimizer.zero_grad()
            loss = criterion(network(features[batch]), targets[batch])
            if not torch.isfinite(loss):
                raise TrainingError(f"Loss diverged to {loss.item()} at epoch {epoch + 1}.")
            loss.backward()
            optimizer.step()

            total_loss += loss.item() * len(batch)

        epoch_loss = total_loss / n_samples
        history.append(epoch_loss)
        logger.debug("Epoch %d/%d, loss %.6f", epoch + 1, config.epochs, epoch_loss)
        if progress is not None:
            progress(epoch + 1, config.epochs, epoch_loss)

    network.eval()
    logger.info("Training finished with loss %.6f", history[-1])
    return TrainedModel(
        network=network,
        epochs_requested=config.epochs,
        epochs_completed=config.epochs,
        loss_history=history,
    )


def predict(model: TrainedModel, features: Sequence[Tuple[int, int]]) -> np.ndarray:
    """Run one batched forward pass and return normalized predictions in order."""
    if not model.complete:
        raise UntrainedModelError(
            f"Model completed {model.epochs_completed} of {model.epochs_requested} epoch(s)."
        )
    if len(features) == 0:
        return np.empty(0, dtype=np.float32)

    inputs = torch.tensor(np.asarray(features, dtype=np.float32).reshape(-1, INPUT_WIDTH))
    model.network.eval()
    with torch.no_grad():
        outputs = model.network(inputs)
    return outputs.squeeze(-1).cpu().numpy()
