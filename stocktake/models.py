"""Core typed models shared by the valuation, transaction, and import modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .constants import DEFAULT_CATEGORY


@dataclass(frozen=True, slots=True)
class DataIssue:
    """Structured data-quality issue emitted while normalizing imported rows."""

    code: str
    message: str
    field: str | None = None
    row: int | None = None


@dataclass(frozen=True, slots=True)
class CostLayer:
    """A batch of on-hand stock sharing one unit cost and acquisition time."""

    quantity: float
    unit_cost: float
    acquired_at: datetime | None = None

    @property
    def value(self) -> float:
        """Return the carrying value of the layer."""

        return self.quantity * self.unit_cost


@dataclass(frozen=True, slots=True)
class InventoryItem:
    """One SKU tracked by the session.

    `draft_sold` and `draft_received` hold raw operator input and are only
    interpreted when previewed or committed.
    """

    id: str
    sku: str
    name: str
    category: str = DEFAULT_CATEGORY
    unit_cost: float = 0.0
    current_count: float = 0.0
    last_count: float = 0.0
    cost_layers: tuple[CostLayer, ...] = ()
    draft_sold: str = ""
    draft_received: str = ""
    item_note: str = ""
    last_updated: datetime | None = None


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """Immutable audit record of one item's quantity and value change."""

    id: str
    item_id: str
    sku: str
    name: str
    category: str
    previous_count: float
    new_count: float
    sold: float
    received: float
    delta: float
    unit_cost: float
    sold_value: float
    received_value: float
    sold_unit_cost: float
    received_unit_cost: float
    value_impact: float
    performed_by: str = ""
    notes: str = ""
    item_note: str = ""
    timestamp: datetime | None = None


@dataclass(frozen=True, slots=True)
class Metadata:
    """Session-wide bookkeeping replaced wholesale on import and reset on clear."""

    source_file_name: str = ""
    last_imported_at: datetime | None = None
    last_stocktake_at: datetime | None = None
    sheet_name: str | None = None
    next_sku_number: int = 1


@dataclass(frozen=True, slots=True)
class CostMovement:
    """Result of running one sold/received movement through the cost layers."""

    layers: tuple[CostLayer, ...]
    total_quantity: float
    sold_value: float
    sold_unit_cost: float
    received_value: float
    received_unit_cost: float

    @property
    def value_impact(self) -> float:
        """Return the net change in carrying value."""

        return self.received_value - self.sold_value


@dataclass(slots=True)
class ImportResult:
    """Normalized output of one import, ready to replace session state."""

    items: list[InventoryItem]
    ledger: list[LedgerEntry]
    metadata: Metadata
    issues: list[DataIssue] = field(default_factory=list)

    @property
    def rows_with_issues(self) -> int:
        """Return the number of distinct source rows that produced issues."""

        return len({issue.row for issue in self.issues if issue.row is not None})
