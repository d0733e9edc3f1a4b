"""Boundary between spreadsheet records and the session's item/ledger shapes.

Incoming rows are normalized into `InventoryItem` and `LedgerEntry` values;
outgoing state is flattened into plain rows for the three exported sheets.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .aggregates import totals
from .constants import DEFAULT_CATEGORY, EPSILON, NOTE_COLUMN, REQUIRED_COLUMNS, SUMMARY_TITLE
from .layers import average_unit_cost, initial_layers, merge_layers, total_quantity
from .logging_config import get_logger
from .models import CostLayer, DataIssue, ImportResult, InventoryItem, LedgerEntry, Metadata
from .normalize import normalize_number, normalize_text, parse_timestamp
from .sku import next_sku_number

logger = get_logger("importer")

RawRow = Mapping[str, Any]

COST_LAYERS_KEY = "cost_layers"


class WorkbookStructureError(ValueError):
    """Raised when an import is structurally unusable; nothing is loaded."""


@dataclass(slots=True)
class RawImport:
    """Records handed over by a spreadsheet reader, keyed by column title."""

    headers: list[str]
    rows: list[RawRow]
    sheet_name: str | None = None
    source_file_name: str = ""
    imported_at: datetime | None = None
    last_stocktake_at: datetime | None = None
    movement_rows: list[RawRow] = field(default_factory=list)


def _header_key(header: Any) -> str:
    """Normalize a header for case- and whitespace-insensitive matching."""

    return normalize_text(header).casefold()


def ensure_required_columns(headers: Iterable[Any]) -> None:
    """Fail fast when any required column is missing from the header row."""

    present = {_header_key(header) for header in headers}
    missing = [title for title in REQUIRED_COLUMNS.values() if title.casefold() not in present]
    if missing:
        raise WorkbookStructureError(f"Missing required columns: {', '.join(missing)}")


def _keyed(row: RawRow) -> dict[str, Any]:
    """Re-key a row by normalized header so lookups ignore case and spacing."""

    return {_header_key(key): value for key, value in row.items() if isinstance(key, str)}


def _number(
    row: Mapping[str, Any],
    title: str,
    *,
    row_number: int,
    issues: list[DataIssue],
    default: float = 0.0,
) -> float:
    """Read a numeric cell, recording an issue and returning `default` when it is not numeric."""

    raw = row.get(title.casefold())
    if raw is None or normalize_text(raw) == "":
        return default
    value = normalize_number(raw, math.nan)
    if math.isnan(value):
        issues.append(
            DataIssue(
                code="invalid_number",
                message=f"{title} is not numeric: {normalize_text(raw)}",
                field=title,
                row=row_number,
            )
        )
        return default
    return value


def _timestamp(
    row: Mapping[str, Any],
    title: str,
    *,
    row_number: int,
    issues: list[DataIssue],
) -> datetime | None:
    """Read a date cell, recording an issue when it is present but unparseable."""

    raw = row.get(title.casefold())
    if raw is None or normalize_text(raw) == "":
        return None
    parsed = parse_timestamp(raw)
    if parsed is None:
        issues.append(
            DataIssue(
                code="invalid_date",
                message=f"Unable to parse {title}: {normalize_text(raw)}",
                field=title,
                row=row_number,
            )
        )
    return parsed


def _coerce_layer(raw: CostLayer | Mapping[str, Any]) -> CostLayer:
    """Build a `CostLayer` from a layer value or a plain mapping."""

    if isinstance(raw, CostLayer):
        return raw
    return CostLayer(
        quantity=normalize_number(raw.get("quantity"), 0.0),
        unit_cost=normalize_number(raw.get("unit_cost"), 0.0),
        acquired_at=parse_timestamp(raw.get("acquired_at")),
    )


def _item_from_row(
    raw_row: RawRow,
    *,
    index: int,
    seen_ids: set[str],
    layer_fallback_time: datetime | None,
    issues: list[DataIssue],
) -> InventoryItem:
    """Convert one raw inventory row, tolerating malformed cells."""

    row = _keyed(raw_row)
    row_number = index + 2

    sku = normalize_text(row.get(REQUIRED_COLUMNS["sku"].casefold()))
    name = normalize_text(row.get(REQUIRED_COLUMNS["name"].casefold())) or f"Item {index + 1}"
    base_id = sku or name or f"row-{index + 1}"
    item_id = base_id
    suffix = 1
    while item_id in seen_ids:
        item_id = f"{base_id}-{suffix}"
        suffix += 1
    seen_ids.add(item_id)

    current_count = _number(row, REQUIRED_COLUMNS["count"], row_number=row_number, issues=issues)
    if current_count < 0:
        issues.append(
            DataIssue(
                code="negative_quantity",
                message=f"Count is negative: {current_count:g}",
                field=REQUIRED_COLUMNS["count"],
                row=row_number,
            )
        )
        current_count = 0.0
    unit_cost = _number(row, REQUIRED_COLUMNS["unit_cost"], row_number=row_number, issues=issues)
    last_updated = _timestamp(row, REQUIRED_COLUMNS["last_updated"], row_number=row_number, issues=issues)

    layer_time = last_updated or layer_fallback_time
    supplied = raw_row.get(COST_LAYERS_KEY) or ()
    layers = merge_layers(_coerce_layer(layer) for layer in supplied)
    if not layers or abs(total_quantity(layers) - current_count) > EPSILON:
        if supplied:
            issues.append(
                DataIssue(
                    code="cost_layers_replaced",
                    message="Cost layers did not add up to the count and were replaced",
                    field=COST_LAYERS_KEY,
                    row=row_number,
                )
            )
        layers = initial_layers(current_count, unit_cost, layer_time)

    return InventoryItem(
        id=item_id,
        sku=sku,
        name=name,
        category=normalize_text(row.get(REQUIRED_COLUMNS["category"].casefold())) or DEFAULT_CATEGORY,
        unit_cost=unit_cost,
        current_count=current_count,
        last_count=current_count,
        cost_layers=layers,
        item_note=normalize_text(row.get(NOTE_COLUMN.casefold()) or row.get("notes")),
        last_updated=last_updated,
    )


def _entry_from_row(
    raw_row: RawRow,
    *,
    index: int,
    item_ids_by_sku: Mapping[str, str],
    issues: list[DataIssue],
) -> LedgerEntry:
    """Convert one movement row, deriving values the sheet does not carry."""

    row = _keyed(raw_row)
    row_number = index + 2

    def number(title: str, default: float = 0.0) -> float:
        """Read a numeric movement cell with a derived default."""

        return _number(row, title, row_number=row_number, issues=issues, default=default)

    sku = normalize_text(row.get("sku"))
    name = normalize_text(row.get("item"))
    sold = number("Sold")
    received = number("Received")
    unit_cost = number("Unit Cost")
    previous_count = number("Previous Count")
    new_count = number("New Count", previous_count - sold + received)
    sold_value = number("Sold Value", sold * unit_cost)
    received_value = number("Received Value", received * unit_cost)
    timestamp = _timestamp(row, "Timestamp", row_number=row_number, issues=issues)
    item_id = item_ids_by_sku.get(sku) or sku or name

    return LedgerEntry(
        id=f"{item_id}-{timestamp.isoformat() if timestamp else f'row-{row_number}'}",
        item_id=item_id,
        sku=sku,
        name=name,
        category=normalize_text(row.get("category")) or DEFAULT_CATEGORY,
        previous_count=previous_count,
        new_count=new_count,
        sold=sold,
        received=received,
        delta=number("Delta", new_count - previous_count),
        unit_cost=unit_cost,
        sold_value=sold_value,
        received_value=received_value,
        sold_unit_cost=number("Sold Unit Cost", sold_value / sold if sold > EPSILON else 0.0),
        received_unit_cost=number(
            "Received Unit Cost", received_value / received if received > EPSILON else 0.0
        ),
        value_impact=number("Value Change", received_value - sold_value),
        performed_by=normalize_text(row.get("performed by")),
        notes=normalize_text(row.get("notes")),
        item_note=normalize_text(row.get("item note")),
        timestamp=timestamp,
    )


def normalize_import(payload: RawImport) -> ImportResult:
    """Normalize a raw import into items, ledger, and fresh metadata.

    Raises `WorkbookStructureError` before reading any row when a required
    column is missing. Malformed cells degrade to 0 or `None` and are reported
    as issues instead.
    """

    ensure_required_columns(payload.headers)

    issues: list[DataIssue] = []
    seen_ids: set[str] = set()
    layer_fallback_time = payload.last_stocktake_at or payload.imported_at
    items = [
        _item_from_row(row, index=index, seen_ids=seen_ids, layer_fallback_time=layer_fallback_time, issues=issues)
        for index, row in enumerate(payload.rows)
    ]

    item_ids_by_sku = {item.sku: item.id for item in reversed(items) if item.sku}
    ledger = [
        _entry_from_row(row, index=index, item_ids_by_sku=item_ids_by_sku, issues=issues)
        for index, row in enumerate(payload.movement_rows)
    ]

    last_stocktake_at = payload.last_stocktake_at
    if last_stocktake_at is None:
        stamped = [entry.timestamp for entry in ledger if entry.timestamp is not None]
        last_stocktake_at = max(stamped) if stamped else None

    metadata = Metadata(
        source_file_name=payload.source_file_name,
        last_imported_at=payload.imported_at,
        last_stocktake_at=last_stocktake_at,
        sheet_name=payload.sheet_name,
        next_sku_number=next_sku_number(items),
    )
    logger.info(
        "import_normalized",
        extra={
            "source_file_name": payload.source_file_name,
            "item_count": len(items),
            "ledger_count": len(ledger),
            "issue_count": len(issues),
        },
    )
    return ImportResult(items=items, ledger=ledger, metadata=metadata, issues=issues)


def item_rows(items: Iterable[InventoryItem]) -> list[list[Any]]:
    """Rows for the item sheet; the cost column is the layers' weighted average."""

    return [
        [
            item.sku,
            item.name,
            item.category,
            item.current_count,
            average_unit_cost(item.cost_layers, item.unit_cost),
            item.last_updated or "",
            item.item_note,
        ]
        for item in items
    ]


def ledger_rows(ledger: Iterable[LedgerEntry]) -> list[list[Any]]:
    """Rows for the movement sheet, in ledger (most recent first) order."""

    return [
        [
            entry.sku,
            entry.name,
            entry.category,
            entry.previous_count,
            entry.sold,
            entry.received,
            entry.new_count,
            entry.delta,
            entry.unit_cost,
            entry.sold_value,
            entry.received_value,
            entry.value_impact,
            entry.performed_by,
            entry.notes,
            entry.item_note,
            entry.timestamp or "",
        ]
        for entry in ledger
    ]


def summary_rows(
    items: Sequence[InventoryItem],
    metadata: Metadata,
    generated_at: datetime,
) -> list[list[Any]]:
    """Label/value rows for the summary sheet."""

    figures = totals(items)
    return [
        [SUMMARY_TITLE],
        ["Generated At", generated_at],
        ["Source File", metadata.source_file_name],
        ["Imported At", metadata.last_imported_at or ""],
        ["Last Stocktake", metadata.last_stocktake_at or ""],
        ["Total SKUs", figures["total_skus"]],
        ["Units On Hand", figures["total_current"]],
        ["Inventory Value", figures["total_value"]],
    ]
