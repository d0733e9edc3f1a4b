"""FIFO cost movement calculation and read-only draft previews."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from .constants import EPSILON
from .layers import initial_layers, merge_layers, total_quantity
from .logging_config import get_logger
from .models import CostLayer, CostMovement, InventoryItem
from .normalize import normalize_number, parse_adjustment

logger = get_logger("movement")


def compute_movement(
    layers: Iterable[CostLayer],
    sold: float = 0.0,
    received: float = 0.0,
    unit_cost: float = 0.0,
    timestamp: datetime | None = None,
) -> CostMovement:
    """Consume `sold` FIFO from `layers`, then receive `received` at `unit_cost`.

    Selling more than the layers hold is allowed. The excess is valued at the
    cost of the last remainder layer when one exists, otherwise at
    `unit_cost`. The resulting layer set is then empty before the receipt is
    appended.
    """

    working = [
        CostLayer(
            quantity=normalize_number(layer.quantity, 0.0),
            unit_cost=normalize_number(layer.unit_cost, 0.0),
            acquired_at=layer.acquired_at,
        )
        for layer in layers
    ]
    working = [layer for layer in working if layer.quantity > EPSILON]

    sold_quantity = max(0.0, normalize_number(sold, 0.0))
    remaining_sold = sold_quantity
    sold_value = 0.0
    remainder: list[CostLayer] = []

    for layer in working:
        if remaining_sold <= EPSILON:
            remainder.append(layer)
            continue
        consume = min(layer.quantity, remaining_sold)
        if consume > EPSILON:
            sold_value += consume * layer.unit_cost
            remaining_sold -= consume
        leftover = layer.quantity - consume
        if leftover > EPSILON:
            remainder.append(CostLayer(quantity=leftover, unit_cost=layer.unit_cost, acquired_at=layer.acquired_at))

    reference_cost = normalize_number(unit_cost, 0.0)
    if remaining_sold > EPSILON:
        fallback_cost = remainder[-1].unit_cost if remainder else reference_cost
        logger.info(
            "oversell_valued_at_fallback_cost",
            extra={"oversold": remaining_sold, "fallback_cost": fallback_cost},
        )
        sold_value += remaining_sold * fallback_cost
        remaining_sold = 0.0

    received_quantity = max(0.0, normalize_number(received, 0.0))
    received_value = 0.0
    if received_quantity > EPSILON:
        received_value = received_quantity * reference_cost
        remainder.append(CostLayer(quantity=received_quantity, unit_cost=reference_cost, acquired_at=timestamp))

    merged = merge_layers(remainder)
    return CostMovement(
        layers=merged,
        total_quantity=total_quantity(merged),
        sold_value=sold_value,
        sold_unit_cost=sold_value / sold_quantity if sold_quantity > EPSILON else 0.0,
        received_value=received_value,
        received_unit_cost=reference_cost if received_quantity > EPSILON else 0.0,
    )


def item_layers(item: InventoryItem) -> tuple[CostLayer, ...]:
    """Return the item's layers, synthesizing one at its reference cost if it has none."""

    if item.cost_layers:
        return item.cost_layers
    return initial_layers(item.current_count, item.unit_cost, item.last_updated)


def summarise_item_impact(
    item: InventoryItem,
    sold: float,
    received: float,
    timestamp: datetime | None = None,
) -> CostMovement:
    """Run a movement against one item's layers and reference cost."""

    return compute_movement(
        item_layers(item),
        sold=sold,
        received=received,
        unit_cost=item.unit_cost,
        timestamp=timestamp,
    )


def preview_draft_impact(item: InventoryItem) -> CostMovement:
    """Return the movement the item's current drafts would produce if committed."""

    return summarise_item_impact(
        item,
        parse_adjustment(item.draft_sold),
        parse_adjustment(item.draft_received),
    )
