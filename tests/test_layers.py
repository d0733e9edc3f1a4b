"""Tests for cost layer construction, coalescing, and valuation sums."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from stocktake.layers import average_unit_cost, initial_layers, merge_layers, total_quantity, total_value
from stocktake.models import CostLayer

T1 = datetime(2025, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2025, 2, 1, tzinfo=timezone.utc)


def test_initial_layers_is_empty_for_zero_quantity() -> None:
    """No stock means no layers."""
    assert initial_layers(0, 5.0) == ()
    assert initial_layers(1e-12, 5.0) == ()


def test_initial_layers_creates_one_layer() -> None:
    """Positive stock becomes a single layer at the given cost and time."""
    assert initial_layers(100, 5.0, T1) == (CostLayer(quantity=100.0, unit_cost=5.0, acquired_at=T1),)


def test_merge_layers_coalesces_equal_cost_with_missing_timestamp() -> None:
    """Equal costs merge when either side lacks a timestamp; the first timestamp wins."""
    merged = merge_layers(
        [
            CostLayer(quantity=10, unit_cost=4.0, acquired_at=T1),
            CostLayer(quantity=5, unit_cost=4.0, acquired_at=None),
        ]
    )
    assert merged == (CostLayer(quantity=15.0, unit_cost=4.0, acquired_at=T1),)


def test_merge_layers_keeps_distinct_timestamps_and_costs_apart() -> None:
    """Different acquisition times or costs are separate batches."""
    layers = [
        CostLayer(quantity=10, unit_cost=4.0, acquired_at=T1),
        CostLayer(quantity=10, unit_cost=4.0, acquired_at=T2),
        CostLayer(quantity=10, unit_cost=6.0, acquired_at=T2),
    ]
    assert merge_layers(layers) == tuple(
        CostLayer(quantity=10.0, unit_cost=layer.unit_cost, acquired_at=layer.acquired_at) for layer in layers
    )


def test_merge_layers_only_merges_adjacent_layers() -> None:
    """Order is acquisition sequence, so non-adjacent equal costs stay separate."""
    merged = merge_layers(
        [
            CostLayer(quantity=1, unit_cost=4.0),
            CostLayer(quantity=1, unit_cost=6.0),
            CostLayer(quantity=1, unit_cost=4.0),
        ]
    )
    assert [layer.unit_cost for layer in merged] == [4.0, 6.0, 4.0]


def test_merge_layers_drops_empty_layers() -> None:
    """Zero and negative quantities never survive a merge."""
    merged = merge_layers(
        [
            CostLayer(quantity=0, unit_cost=4.0),
            CostLayer(quantity=-3, unit_cost=4.0),
            CostLayer(quantity=2, unit_cost=4.0),
        ]
    )
    assert merged == (CostLayer(quantity=2.0, unit_cost=4.0),)


def test_totals_and_average_cost() -> None:
    """Quantity/value are straight sums; average cost is value-weighted."""
    layers = [CostLayer(quantity=10, unit_cost=4.0), CostLayer(quantity=30, unit_cost=8.0)]
    assert total_quantity(layers) == 40.0
    assert total_value(layers) == 280.0
    assert average_unit_cost(layers) == pytest.approx(7.0)
    assert average_unit_cost([], fallback=3.0) == 3.0


_layer_strategy = st.builds(
    CostLayer,
    quantity=st.floats(min_value=-5, max_value=500, allow_nan=False, allow_infinity=False),
    unit_cost=st.sampled_from([1.0, 2.0, 2.5]),
    acquired_at=st.sampled_from([None, T1, T2]),
)


@given(st.lists(_layer_strategy, max_size=12))
def test_merge_layers_is_idempotent(layers: list[CostLayer]) -> None:
    """Merging an already-merged list changes nothing."""
    once = merge_layers(layers)
    assert merge_layers(once) == once


@given(st.lists(_layer_strategy, max_size=12))
def test_merge_layers_preserves_positive_quantity(layers: list[CostLayer]) -> None:
    """Coalescing never gains or loses stock."""
    expected = sum(layer.quantity for layer in layers if layer.quantity > 1e-9)
    assert total_quantity(merge_layers(layers)) == pytest.approx(expected)
