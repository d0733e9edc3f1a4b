"""Derived totals and views recomputed on demand from current session state."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol, TypedDict

from .constants import DEFAULT_CATEGORY, MOVEMENT_WINDOW_DAYS
from .layers import total_value
from .models import InventoryItem, LedgerEntry
from .movement import item_layers, summarise_item_impact
from .normalize import as_utc, parse_adjustment


class Totals(TypedDict):
    """Headline inventory figures."""

    total_skus: int
    total_current: float
    total_last: float
    total_delta: float
    total_value: float


class DraftSummary(TypedDict):
    """Pending effect of all uncommitted drafts."""

    items: int
    sold: float
    received: float
    value: float


class LedgerSummary(TypedDict):
    """Roll-up of a (possibly filtered) set of ledger entries."""

    adjustments: int
    sold: float
    received: float
    units: float
    value: float
    latest: datetime | None


class MovementSummary(TypedDict):
    """Flow of units and value across a window of ledger entries."""

    entries: int
    sold: float
    received: float
    value_out: float
    value_in: float


class MoverTotals(TypedDict):
    """Per-item sold/received totals over a window of ledger entries."""

    id: str
    sku: str
    name: str
    category: str
    sold: float
    sold_value: float
    received: float
    received_value: float


class CategoryBreakdown(TypedDict):
    """On-hand units and value for one category."""

    category: str
    units: float
    value: float
    value_share: float


class _Categorised(Protocol):
    category: str


def totals(items: Iterable[InventoryItem]) -> Totals:
    """Return SKU count, current and previous units, and carrying value."""

    items = list(items)
    total_current = sum((item.current_count for item in items), 0.0)
    total_last = sum((item.last_count for item in items), 0.0)
    return {
        "total_skus": len(items),
        "total_current": total_current,
        "total_last": total_last,
        "total_delta": total_current - total_last,
        "total_value": sum((total_value(item_layers(item)) for item in items), 0.0),
    }


def has_drafts(items: Iterable[InventoryItem]) -> bool:
    """Return whether any item has a non-zero sold or received draft."""

    return any(parse_adjustment(item.draft_sold) > 0 or parse_adjustment(item.draft_received) > 0 for item in items)


def draft_summary(items: Iterable[InventoryItem]) -> DraftSummary:
    """Summarise drafts using read-only cost previews.

    Items whose drafts both parse to zero are left out entirely.
    """

    summary: DraftSummary = {"items": 0, "sold": 0.0, "received": 0.0, "value": 0.0}
    for item in items:
        sold = parse_adjustment(item.draft_sold)
        received = parse_adjustment(item.draft_received)
        if sold == 0 and received == 0:
            continue
        preview = summarise_item_impact(item, sold, received)
        summary["items"] += 1
        summary["sold"] += sold
        summary["received"] += received
        summary["value"] += preview.received_value - preview.sold_value
    return summary


def recent_movements(
    ledger: Iterable[LedgerEntry],
    window_days: int = MOVEMENT_WINDOW_DAYS,
    *,
    now: datetime | None = None,
) -> list[LedgerEntry]:
    """Return ledger entries stamped within the last `window_days`.

    Entries without a timestamp are excluded. Ledger order is kept.
    """

    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    threshold = now - timedelta(days=window_days)
    return [entry for entry in ledger if entry.timestamp is not None and entry.timestamp >= threshold]


def categories(records: Iterable[_Categorised]) -> list[str]:
    """Return distinct non-empty categories in first-seen order."""

    return list(dict.fromkeys(record.category for record in records if record.category))


def _matches_category(record: _Categorised, category: str) -> bool:
    """Return whether `record` passes the category filter."""

    return category == "all" or record.category == category


def filter_items(items: Iterable[InventoryItem], query: str = "", category: str = "all") -> list[InventoryItem]:
    """Filter items by a case-insensitive name/SKU search and a category."""

    needle = query.strip().casefold()
    return [
        item
        for item in items
        if _matches_category(item, category)
        and (not needle or needle in item.name.casefold() or needle in item.sku.casefold())
    ]


def filter_ledger(ledger: Iterable[LedgerEntry], query: str = "", category: str = "all") -> list[LedgerEntry]:
    """Filter entries by a case-insensitive name/SKU/operator search and a category."""

    needle = query.strip().casefold()
    return [
        entry
        for entry in ledger
        if _matches_category(entry, category)
        and (
            not needle
            or needle in entry.name.casefold()
            or needle in entry.sku.casefold()
            or needle in entry.performed_by.casefold()
        )
    ]


def ledger_summary(entries: Iterable[LedgerEntry]) -> LedgerSummary:
    """Roll up adjustment count, unit flow, net value, and the latest timestamp."""

    summary: LedgerSummary = {
        "adjustments": 0,
        "sold": 0.0,
        "received": 0.0,
        "units": 0.0,
        "value": 0.0,
        "latest": None,
    }
    for entry in entries:
        summary["adjustments"] += 1
        summary["sold"] += entry.sold
        summary["received"] += entry.received
        summary["units"] += entry.delta
        summary["value"] += entry.value_impact
        if entry.timestamp is not None and (summary["latest"] is None or entry.timestamp > summary["latest"]):
            summary["latest"] = entry.timestamp
    return summary


def movement_summary(entries: Iterable[LedgerEntry]) -> MovementSummary:
    """Sum sold/received units and their recorded values."""

    summary: MovementSummary = {"entries": 0, "sold": 0.0, "received": 0.0, "value_out": 0.0, "value_in": 0.0}
    for entry in entries:
        if entry.sold > 0 or entry.received > 0:
            summary["entries"] += 1
        summary["sold"] += entry.sold
        summary["received"] += entry.received
        summary["value_out"] += entry.sold_value
        summary["value_in"] += entry.received_value
    return summary


def mover_totals(items: Iterable[InventoryItem], entries: Iterable[LedgerEntry]) -> list[MoverTotals]:
    """Accumulate per-item movement, keeping items with no movement at zero.

    Entries for items no longer in the session get their own bucket keyed by
    item id, SKU, or name.
    """

    buckets: dict[str, MoverTotals] = {}
    for item in items:
        buckets[item.id] = {
            "id": item.id,
            "sku": item.sku,
            "name": item.name,
            "category": item.category,
            "sold": 0.0,
            "sold_value": 0.0,
            "received": 0.0,
            "received_value": 0.0,
        }
    for entry in entries:
        key = entry.item_id or entry.sku or entry.name
        bucket = buckets.setdefault(
            key,
            {
                "id": key,
                "sku": entry.sku,
                "name": entry.name,
                "category": entry.category,
                "sold": 0.0,
                "sold_value": 0.0,
                "received": 0.0,
                "received_value": 0.0,
            },
        )
        bucket["sold"] += entry.sold
        bucket["sold_value"] += entry.sold_value
        bucket["received"] += entry.received
        bucket["received_value"] += entry.received_value
    return list(buckets.values())


def top_outflow(movers: Sequence[MoverTotals], limit: int = 4) -> list[MoverTotals]:
    """Return the items with the most units sold, largest first."""

    return sorted((mover for mover in movers if mover["sold"] > 0), key=lambda mover: mover["sold"], reverse=True)[
        :limit
    ]


def least_moved(movers: Sequence[MoverTotals], limit: int = 4) -> list[MoverTotals]:
    """Return the items with the fewest units sold, smallest first."""

    return sorted(movers, key=lambda mover: mover["sold"])[:limit]


def category_breakdown(items: Iterable[InventoryItem]) -> list[CategoryBreakdown]:
    """Return units, carrying value, and value share per category, by value descending."""

    buckets: dict[str, list[float]] = {}
    for item in items:
        bucket = buckets.setdefault(item.category or DEFAULT_CATEGORY, [0.0, 0.0])
        bucket[0] += item.current_count
        bucket[1] += total_value(item_layers(item))

    grand_total = sum(value for _, value in buckets.values())
    breakdown: list[CategoryBreakdown] = [
        {
            "category": category,
            "units": units,
            "value": value,
            "value_share": value / grand_total if grand_total else 0.0,
        }
        for category, (units, value) in buckets.items()
    ]
    return sorted(breakdown, key=lambda row: row["value"], reverse=True)
