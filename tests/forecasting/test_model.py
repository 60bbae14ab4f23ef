import threading

import numpy as np
import pytest
import torch

from src.forecasting.encoding import TrainingExample
from src.forecasting.errors import (
    EmptyDatasetError,
    TrainingCancelled,
    TrainingError,
    UntrainedModelError,
)
from src.forecasting.model import (
    SalesRegressor,
    TrainedModel,
    TrainingConfig,
    build_model,
    predict,
    train,
)


def _dataset() -> list[TrainingExample]:
    labels = [0.0, 0.25, 0.5, 0.75, 1.0, 0.1, 0.4, 0.9]
    return [
        TrainingExample(features=(index % 4, index // 4), label=label)
        for index, label in enumerate(labels)
    ]


def test_build_model_layer_widths() -> None:
    model = build_model((128, 64, 32))
    linear = [layer for layer in model.layers if isinstance(layer, torch.nn.Linear)]

    assert [(layer.in_features, layer.out_features) for layer in linear] == [
        (2, 128),
        (128, 64),
        (64, 32),
        (32, 1),
    ]
    assert sum(isinstance(layer, torch.nn.ReLU) for layer in model.layers) == 3


def test_training_config_validates_values() -> None:
    with pytest.raises(ValueError):
        TrainingConfig(epochs=0)
    with pytest.raises(ValueError):
        TrainingConfig(hidden_units=())
    with pytest.raises(ValueError):
        TrainingConfig(batch_size=0)


def test_train_reduces_loss_and_records_history() -> None:
    config = TrainingConfig(epochs=150, hidden_units=(16, 8, 4), seed=7)
    progress_calls: list[tuple[int, int]] = []

    model = train(
        _dataset(),
        config,
        progress=lambda epoch, epochs, loss: progress_calls.append((epoch, epochs)),
    )

    assert model.complete
    assert len(model.loss_history) == 150
    assert model.final_loss < model.loss_history[0]
    assert progress_calls[0] == (1, 150)
    assert progress_calls[-1] == (150, 150)


def test_train_with_seed_is_repeatable() -> None:
    config = TrainingConfig(epochs=5, hidden_units=(8, 4, 2), seed=11)

    first = train(_dataset(), config)
    second = train(_dataset(), config)

    assert first.loss_history == second.loss_history


def test_train_rejects_empty_dataset() -> None:
    with pytest.raises(EmptyDatasetError):
        train([], TrainingConfig(epochs=1))


def test_train_raises_on_divergence() -> None:
    examples = [TrainingExample(features=(0, 0), label=float("nan"))]

    with pytest.raises(TrainingError):
        train(examples, TrainingConfig(epochs=3, hidden_units=(4, 4, 4)))


def test_train_honours_cancel_event() -> None:
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(TrainingCancelled):
        train(_dataset(), TrainingConfig(epochs=10, hidden_units=(4, 4, 4)), cancel_event=cancel)


def test_predict_runs_single_batch_in_order() -> None:
    model = train(_dataset(), TrainingConfig(epochs=2, hidden_units=(4, 4, 4), seed=3))
    features = [(5, 0), (5, 1), (6, 0)]

    predictions = predict(model, features)

    assert predictions.shape == (3,)
    for feature, value in zip(features, predictions):
        assert np.isclose(predict(model, [feature])[0], value)


def test_predict_refuses_incomplete_model() -> None:
    partial = TrainedModel(network=SalesRegressor((4, 4, 4)), epochs_requested=10, epochs_completed=4)

    with pytest.raises(UntrainedModelError):
        predict(partial, [(0, 0)])
