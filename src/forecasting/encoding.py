"""Categorical encoding of sales records into model features."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from numbers import Complex, Number, Real
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

MISSING_TOKEN = "UNSPECIFIED"


@dataclass(frozen=True, slots=True)
class RawRecord:
    """A single sales row as produced by ingestion."""

    sales_date: str
    product_description: str
    quantity_sold: object


@dataclass(frozen=True, slots=True)
class TrainingExample:
    """Encoded ``(date_index, product_index)`` features with their label."""

    features: Tuple[int, int]
    label: float


class IndexMap:
    """Ordered bidirectional mapping between tokens and dense integer indices.

    Indices are handed out as ``0..N-1`` in the order tokens are first added
    and are never reused. Once :meth:`freeze` is called the map rejects new
    tokens.
    """

    def __init__(self, tokens: Iterable[Hashable] = ()) -> None:
        self._index_by_token: Dict[Hashable, int] = {}
        self._tokens: List[Hashable] = []
        self._frozen = False
        for token in tokens:
            self.add(token)

    def add(self, token: Hashable) -> int:
        """Return the index of ``token``, assigning the next one if unseen."""
        existing = self._index_by_token.get(token)
        if existing is not None:
            return existing
        if self._frozen:
            raise ValueError(f"IndexMap is frozen; cannot add token {token!r}.")
        index = len(self._tokens)
        self._index_by_token[token] = index
        self._tokens.append(token)
        return index

    def freeze(self) -> "IndexMap":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def index_of(self, token: Hashable) -> int:
        try:
            return self._index_by_token[token]
        except KeyError:
            raise KeyError(f"Unknown token: {token!r}") from None

    def token_at(self, index: int) -> Hashable:
        if index < 0 or index >= len(self._tokens):
            raise KeyError(f"Unknown index: {index}")
        return self._tokens[index]

    def tokens(self) -> Tuple[Hashable, ...]:
        return tuple(self._tokens)

    def indices(self) -> range:
        return range(len(self._tokens))

    def max_index(self) -> Optional[int]:
        return len(self._tokens) - 1 if self._tokens else None

    def items(self) -> Iterator[Tuple[Hashable, int]]:
        return iter(self._index_by_token.items())

    def __contains__(self, token: object) -> bool:
        return token in self._index_by_token

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._tokens)

    def __repr__(self) -> str:
        return f"IndexMap({self._tokens!r})"


def parse_quantity(value: object) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None`` when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, Number) or (
        isinstance(value, Complex) and not isinstance(value, Real)
    ):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


@dataclass(slots=True)
class _Encoder:
    date_map: IndexMap = field(default_factory=IndexMap)
    product_map: IndexMap = field(default_factory=IndexMap)

    def encode_row(self, record: RawRecord, quantity: float) -> TrainingExample:
        date_index = self.date_map.add(record.sales_date)
        product_index = self.product_map.add(record.product_description)
        return TrainingExample(features=(date_index, product_index), label=quantity)


def filter_valid_records(
    rows: Iterable[RawRecord],
) -> Tuple[List[Tuple[RawRecord, float]], int]:
    """Split ``rows`` into (record, parsed quantity) pairs and a dropped count."""
    valid: List[Tuple[RawRecord, float]] = []
    dropped = 0
    for record in rows:
        quantity = parse_quantity(record.quantity_sold)
        if quantity is None:
            dropped += 1
            continue
        valid.append((record, quantity))
    return valid, dropped


def encode(
    rows: Sequence[RawRecord],
) -> Tuple[List[TrainingExample], IndexMap, IndexMap]:
    """Encode raw rows into training examples plus date and product index maps.

    Rows with a non-finite quantity are dropped before any index is assigned,
    so the maps only hold tokens seen on valid rows.
    """
    valid, dropped = filter_valid_records(rows)
    if dropped:
        logger.warning("Dropped %d record(s) with a non-numeric quantity.", dropped)

    encoder = _Encoder()
    examples = [encoder.encode_row(record, quantity) for record, quantity in valid]

    logger.info(
        "Encoded %d example(s): %d date token(s), %d product token(s).",
        len(examples),
        len(encoder.date_map),
        len(encoder.product_map),
    )
    return examples, encoder.date_map.freeze(), encoder.product_map.freeze()
