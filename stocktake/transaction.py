"""Stocktake commit and manual registration, the only writers of committed stock."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from .constants import DEFAULT_CATEGORY, DEFAULT_OPERATOR, EPSILON, NEW_ITEM_NOTE
from .layers import initial_layers
from .logging_config import get_logger
from .models import CostMovement, InventoryItem, LedgerEntry, Metadata
from .movement import summarise_item_impact
from .normalize import as_utc, normalize_number, normalize_text, parse_adjustment
from .sku import format_sku

logger = get_logger("transaction")


@dataclass(frozen=True, slots=True)
class StocktakeResult:
    """Complete post-commit state plus the entries the commit appended."""

    items: tuple[InventoryItem, ...]
    ledger: tuple[LedgerEntry, ...]
    metadata: Metadata
    entries: tuple[LedgerEntry, ...]


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """Post-registration state plus the new item and its opening entry."""

    items: tuple[InventoryItem, ...]
    ledger: tuple[LedgerEntry, ...]
    metadata: Metadata
    item: InventoryItem
    entry: LedgerEntry


def _utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def _is_zero(value: float) -> bool:
    """Return whether `value` is zero within the float tolerance."""

    return abs(value) <= EPSILON


def build_ledger_entry(
    item: InventoryItem,
    *,
    sold: float,
    received: float,
    new_count: float,
    timestamp: datetime,
    performed_by: str,
    notes: str,
    movement: CostMovement,
) -> LedgerEntry | None:
    """Build the ledger entry for one item's movement, or `None` for a no-op.

    The entry's `unit_cost` is the value impact per unit of net change; when
    the count did not change it falls back to the receipt cost, then the sale
    cost, then the item's reference cost.
    """

    delta = new_count - item.current_count
    if _is_zero(delta) and sold == 0 and received == 0:
        return None

    sold_value = movement.sold_value
    received_value = movement.received_value
    sold_unit_cost = sold_value / sold if sold > EPSILON else 0.0
    received_unit_cost = received_value / received if received > EPSILON else movement.received_unit_cost
    value_impact = received_value - sold_value
    if not _is_zero(delta):
        unit_cost = value_impact / delta
    else:
        unit_cost = movement.received_unit_cost or movement.sold_unit_cost or item.unit_cost

    return LedgerEntry(
        id=f"{item.id}-{timestamp.isoformat()}",
        item_id=item.id,
        sku=item.sku,
        name=item.name,
        category=item.category,
        previous_count=item.current_count,
        new_count=new_count,
        sold=sold,
        received=received,
        delta=delta,
        unit_cost=unit_cost,
        sold_value=sold_value,
        received_value=received_value,
        sold_unit_cost=sold_unit_cost,
        received_unit_cost=received_unit_cost,
        value_impact=value_impact,
        performed_by=performed_by,
        notes=notes,
        item_note=item.item_note,
        timestamp=timestamp,
    )


def _opening_entry(
    item: InventoryItem,
    *,
    entry_id: str,
    timestamp: datetime,
    performed_by: str,
    notes: str,
) -> LedgerEntry:
    """Entry treating an item's whole count as received at its reference cost."""

    received_value = item.current_count * item.unit_cost
    return LedgerEntry(
        id=entry_id,
        item_id=item.id,
        sku=item.sku,
        name=item.name,
        category=item.category,
        previous_count=0.0,
        new_count=item.current_count,
        sold=0.0,
        received=item.current_count,
        delta=item.current_count,
        unit_cost=item.unit_cost,
        sold_value=0.0,
        received_value=received_value,
        sold_unit_cost=0.0,
        received_unit_cost=item.unit_cost,
        value_impact=received_value,
        performed_by=performed_by,
        notes=notes,
        item_note=item.item_note,
        timestamp=timestamp,
    )


def synthesize_new_item_entries(
    items: Sequence[InventoryItem],
    *,
    timestamp: datetime,
    performed_by: str,
    notes: str,
) -> list[LedgerEntry]:
    """Opening entries for items that have stock but were never counted before.

    Only items with `last_count == 0` qualify; an item that already has a
    previous count never gets a synthetic entry.
    """

    return [
        _opening_entry(
            item,
            entry_id=f"{item.id}-{timestamp.isoformat()}-new",
            timestamp=timestamp,
            performed_by=performed_by,
            notes=notes or NEW_ITEM_NOTE,
        )
        for item in items
        if item.last_count == 0 and item.current_count > 0
    ]


def commit_stocktake(
    items: Sequence[InventoryItem],
    ledger: Sequence[LedgerEntry],
    metadata: Metadata,
    performed_by: str,
    notes: str = "",
    *,
    timestamp: datetime | None = None,
) -> StocktakeResult:
    """Turn every item's drafts into committed counts, layers, and ledger entries.

    A blank `performed_by` rejects the whole round and returns the inputs
    unchanged. Otherwise every item is advanced in one pass sharing a single
    timestamp. When no draft produced an entry, opening entries are
    synthesized from the pre-commit `items` for never-counted stock.
    """

    operator = normalize_text(performed_by)
    if not operator:
        logger.warning("stocktake_rejected_missing_operator", extra={"item_count": len(items)})
        return StocktakeResult(items=tuple(items), ledger=tuple(ledger), metadata=metadata, entries=())

    notes = normalize_text(notes)
    timestamp = as_utc(timestamp) if timestamp is not None else _utc_now()

    entries: list[LedgerEntry] = []
    next_items: list[InventoryItem] = []
    for item in items:
        sold = parse_adjustment(item.draft_sold)
        received = parse_adjustment(item.draft_received)
        movement = summarise_item_impact(item, sold, received, timestamp)
        new_count = movement.total_quantity
        entry = build_ledger_entry(
            item,
            sold=sold,
            received=received,
            new_count=new_count,
            timestamp=timestamp,
            performed_by=operator,
            notes=notes,
            movement=movement,
        )
        if entry is not None:
            entries.append(entry)
        next_items.append(
            replace(
                item,
                last_count=item.current_count,
                current_count=new_count,
                draft_sold="",
                draft_received="",
                cost_layers=movement.layers,
                last_updated=timestamp if entry is not None else item.last_updated,
            )
        )

    if not entries:
        entries = synthesize_new_item_entries(items, timestamp=timestamp, performed_by=operator, notes=notes)

    next_metadata = replace(metadata, last_stocktake_at=timestamp) if entries else metadata
    logger.info(
        "stocktake_committed",
        extra={
            "performed_by": operator,
            "item_count": len(next_items),
            "entry_count": len(entries),
            "timestamp": timestamp,
        },
    )
    return StocktakeResult(
        items=tuple(next_items),
        ledger=(*entries, *ledger),
        metadata=next_metadata,
        entries=tuple(entries),
    )


def register_manual_item(
    items: Sequence[InventoryItem],
    ledger: Sequence[LedgerEntry],
    metadata: Metadata,
    *,
    name: str = "",
    category: str = "",
    unit_cost: object = 0,
    current_count: object = 0,
    performed_by: str = "",
    notes: str = "",
    timestamp: datetime | None = None,
) -> RegistrationResult:
    """Add a hand-entered item whose whole opening count is booked as received."""

    timestamp = as_utc(timestamp) if timestamp is not None else _utc_now()
    number = metadata.next_sku_number or 1
    sku = format_sku(number)
    cost = max(0.0, normalize_number(unit_cost, 0.0))
    count = parse_adjustment(current_count)
    notes = normalize_text(notes)

    item = InventoryItem(
        id=f"{sku}-{uuid.uuid4().hex[:6]}",
        sku=sku,
        name=normalize_text(name) or f"Manual Item {number}",
        category=normalize_text(category) or DEFAULT_CATEGORY,
        unit_cost=cost,
        current_count=count,
        last_count=0.0,
        cost_layers=initial_layers(count, cost, timestamp),
        item_note=notes,
        last_updated=timestamp,
    )
    entry = _opening_entry(
        item,
        entry_id=f"{item.id}-{timestamp.isoformat()}",
        timestamp=timestamp,
        performed_by=normalize_text(performed_by) or DEFAULT_OPERATOR,
        notes=notes,
    )
    logger.info("manual_item_registered", extra={"sku": sku, "count": count, "unit_cost": cost})
    return RegistrationResult(
        items=(item, *items),
        ledger=(entry, *ledger),
        metadata=replace(metadata, last_stocktake_at=timestamp, next_sku_number=number + 1),
        item=item,
        entry=entry,
    )
