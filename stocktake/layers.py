"""FIFO cost layer construction, coalescing, and valuation sums."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from .constants import EPSILON
from .models import CostLayer
from .normalize import normalize_number


def initial_layers(
    quantity: float,
    unit_cost: float,
    acquired_at: datetime | None = None,
) -> tuple[CostLayer, ...]:
    """Return the layer set for stock with no batch history.

    Produces no layers for an empty quantity and a single layer otherwise.
    """

    quantity = normalize_number(quantity, 0.0)
    if quantity <= EPSILON:
        return ()
    return (CostLayer(quantity=quantity, unit_cost=normalize_number(unit_cost, 0.0), acquired_at=acquired_at),)


def _can_merge(previous: CostLayer, layer: CostLayer) -> bool:
    """Return whether `layer` can fold into `previous` as one batch."""

    if abs(previous.unit_cost - layer.unit_cost) > EPSILON:
        return False
    if previous.acquired_at is None or layer.acquired_at is None:
        return True
    return previous.acquired_at == layer.acquired_at


def merge_layers(layers: Iterable[CostLayer]) -> tuple[CostLayer, ...]:
    """Coalesce adjacent compatible layers while preserving oldest-first order.

    A layer folds into the previous output layer when unit costs match within
    `EPSILON` and the acquisition timestamps match or either is absent. The
    surviving layer keeps the earlier timestamp. Empty layers are dropped.
    """

    merged: list[CostLayer] = []
    for layer in layers:
        quantity = normalize_number(layer.quantity, 0.0)
        if quantity <= EPSILON:
            continue
        candidate = CostLayer(
            quantity=quantity,
            unit_cost=normalize_number(layer.unit_cost, 0.0),
            acquired_at=layer.acquired_at,
        )
        if merged and _can_merge(merged[-1], candidate):
            previous = merged[-1]
            merged[-1] = CostLayer(
                quantity=previous.quantity + candidate.quantity,
                unit_cost=previous.unit_cost,
                acquired_at=previous.acquired_at,
            )
            continue
        merged.append(candidate)
    return tuple(merged)


def total_quantity(layers: Iterable[CostLayer]) -> float:
    """Return the on-hand quantity represented by `layers`."""

    return sum((normalize_number(layer.quantity, 0.0) for layer in layers), 0.0)


def total_value(layers: Iterable[CostLayer]) -> float:
    """Return the carrying value represented by `layers`."""

    return sum(
        (normalize_number(layer.quantity, 0.0) * normalize_number(layer.unit_cost, 0.0) for layer in layers),
        0.0,
    )


def average_unit_cost(layers: Iterable[CostLayer], fallback: float = 0.0) -> float:
    """Return the value-weighted unit cost of `layers`, or `fallback` when empty."""

    layers = tuple(layers)
    quantity = total_quantity(layers)
    if quantity <= EPSILON:
        return fallback
    return total_value(layers) / quantity
