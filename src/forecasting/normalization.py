"""Min/max scaling of quantity labels.

When every training label is identical the range collapses to zero. That case
is handled by a fixed policy rather than an error: :func:`transform` maps every
label to ``0.0`` and :func:`invert` always returns ``min_quantity``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Sequence

from .encoding import TrainingExample
from .errors import EmptyDatasetError


@dataclass(frozen=True, slots=True)
class NormalizationBounds:
    """Observed label range used to scale into and out of ``[0, 1]``."""

    min_quantity: float
    max_quantity: float

    def __post_init__(self) -> None:
        if self.max_quantity < self.min_quantity:
            raise ValueError(
                f"max_quantity ({self.max_quantity}) is below min_quantity ({self.min_quantity})."
            )

    @property
    def span(self) -> float:
        return self.max_quantity - self.min_quantity

    @property
    def degenerate(self) -> bool:
        return self.span == 0


def fit(examples: Sequence[TrainingExample]) -> NormalizationBounds:
    """Compute label bounds in a single pass over ``examples``."""
    iterator = iter(examples)
    try:
        first = next(iterator)
    except StopIteration:
        raise EmptyDatasetError("Cannot fit normalization bounds on an empty dataset.") from None

    low = high = first.label
    for example in iterator:
        if example.label < low:
            low = example.label
        elif example.label > high:
            high = example.label
    return NormalizationBounds(min_quantity=float(low), max_quantity=float(high))


def normalize_value(value: float, bounds: NormalizationBounds) -> float:
    if bounds.degenerate:
        return 0.0
    return (value - bounds.min_quantity) / bounds.span


def transform(
    examples: Sequence[TrainingExample], bounds: NormalizationBounds
) -> List[TrainingExample]:
    """Return copies of ``examples`` with labels rescaled to ``[0, 1]``."""
    return [replace(example, label=normalize_value(example.label, bounds)) for example in examples]


def invert(value: float, bounds: NormalizationBounds) -> float:
    """Map a normalized value back to the original quantity scale."""
    if bounds.degenerate:
        return bounds.min_quantity
    return value * bounds.span + bounds.min_quantity
