"""In-memory stocktake session.

The session holds one immutable `SessionState`. Every operation derives a
complete new state from the current one and swaps it in with a single
assignment, so a commit reads and replaces the same snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Literal

from .aggregates import DraftSummary, Totals, draft_summary, has_drafts, recent_movements, totals
from .constants import MOVEMENT_WINDOW_DAYS
from .importer import RawImport, normalize_import
from .logging_config import get_logger
from .models import CostMovement, DataIssue, InventoryItem, LedgerEntry, Metadata
from .movement import preview_draft_impact
from .normalize import normalize_number, normalize_text
from .transaction import commit_stocktake, register_manual_item

logger = get_logger("session")

DraftField = Literal["draft_sold", "draft_received"]
_DRAFT_FIELDS = frozenset({"draft_sold", "draft_received"})


@dataclass(frozen=True, slots=True)
class SessionState:
    """Everything the session knows, as one replaceable snapshot."""

    items: tuple[InventoryItem, ...] = ()
    ledger: tuple[LedgerEntry, ...] = ()
    metadata: Metadata = field(default_factory=Metadata)


class StocktakeSession:
    """Host-facing operations over the current session snapshot."""

    def __init__(self, state: SessionState | None = None) -> None:
        """Start from `state`, or an empty session."""

        self.state = state or SessionState()
        self.last_import_issues: list[DataIssue] = []

    @property
    def items(self) -> tuple[InventoryItem, ...]:
        """Return the current items."""

        return self.state.items

    @property
    def ledger(self) -> tuple[LedgerEntry, ...]:
        """Return the ledger, most recent first."""

        return self.state.ledger

    @property
    def metadata(self) -> Metadata:
        """Return the current session metadata."""

        return self.state.metadata

    @property
    def has_inventory(self) -> bool:
        """Return whether any items are loaded."""

        return bool(self.state.items)

    @property
    def has_imported(self) -> bool:
        """Return whether the session came from an imported file."""

        return bool(self.state.metadata.source_file_name)

    @property
    def has_drafts(self) -> bool:
        """Return whether any item has a pending sold/received draft."""

        return has_drafts(self.state.items)

    @property
    def totals(self) -> Totals:
        """Return headline totals for the current items."""

        return totals(self.state.items)

    @property
    def draft_summary(self) -> DraftSummary:
        """Return the pending effect of all drafts."""

        return draft_summary(self.state.items)

    def recent_movements(
        self,
        window_days: int = MOVEMENT_WINDOW_DAYS,
        *,
        now: datetime | None = None,
    ) -> list[LedgerEntry]:
        """Return ledger entries inside the trailing movement window."""

        return recent_movements(self.state.ledger, window_days, now=now)

    def get_item(self, item_id: str) -> InventoryItem | None:
        """Return the item with `item_id`, or `None`."""

        return next((item for item in self.state.items if item.id == item_id), None)

    def _update_item(self, item_id: str, **changes: Any) -> None:
        """Replace one item with a copy carrying `changes`."""

        self.state = replace(
            self.state,
            items=tuple(replace(item, **changes) if item.id == item_id else item for item in self.state.items),
        )

    def load_import(self, payload: RawImport) -> int:
        """Replace the whole session with an import and return its item count.

        A structural failure propagates before the current state is touched.
        """

        result = normalize_import(payload)
        self.state = SessionState(
            items=tuple(result.items),
            ledger=tuple(result.ledger),
            metadata=result.metadata,
        )
        self.last_import_issues = result.issues
        return len(result.items)

    def update_draft(self, item_id: str, draft_field: DraftField, raw_value: Any) -> None:
        """Stage raw sold/received input for one item; other fields are ignored."""

        if draft_field not in _DRAFT_FIELDS:
            return
        self._update_item(item_id, **{draft_field: "" if raw_value is None else str(raw_value)})

    def update_unit_cost(self, item_id: str, raw_value: Any) -> None:
        """Set an item's reference cost, keeping the old one for unparseable input."""

        item = self.get_item(item_id)
        if item is None:
            return
        self._update_item(item_id, unit_cost=max(0.0, normalize_number(raw_value, item.unit_cost)))

    def update_item_note(self, item_id: str, raw_value: Any) -> None:
        """Set an item's free-text note."""

        self._update_item(item_id, item_note=normalize_text(raw_value))

    def preview(self, item_id: str) -> CostMovement | None:
        """Return the read-only cost impact of an item's drafts."""

        item = self.get_item(item_id)
        return preview_draft_impact(item) if item is not None else None

    def reset_drafts(self) -> None:
        """Clear every sold/received draft without touching counts."""

        self.state = replace(
            self.state,
            items=tuple(replace(item, draft_sold="", draft_received="") for item in self.state.items),
        )

    def apply_stocktake(
        self,
        performed_by: str,
        notes: str = "",
        *,
        timestamp: datetime | None = None,
    ) -> list[LedgerEntry]:
        """Commit all drafts and return the entries appended to the ledger.

        A blank operator leaves the session untouched and returns no entries.
        """

        if not normalize_text(performed_by):
            logger.warning("apply_stocktake_missing_operator")
            return []
        state = self.state
        result = commit_stocktake(
            state.items,
            state.ledger,
            state.metadata,
            performed_by,
            notes,
            timestamp=timestamp,
        )
        self.state = SessionState(items=result.items, ledger=result.ledger, metadata=result.metadata)
        return list(result.entries)

    def add_manual_item(
        self,
        *,
        name: str = "",
        category: str = "",
        unit_cost: Any = 0,
        current_count: Any = 0,
        performed_by: str = "",
        notes: str = "",
        timestamp: datetime | None = None,
    ) -> InventoryItem:
        """Register a hand-entered item with its opening ledger entry."""

        state = self.state
        result = register_manual_item(
            state.items,
            state.ledger,
            state.metadata,
            name=name,
            category=category,
            unit_cost=unit_cost,
            current_count=current_count,
            performed_by=performed_by,
            notes=notes,
            timestamp=timestamp,
        )
        self.state = SessionState(items=result.items, ledger=result.ledger, metadata=result.metadata)
        return result.item

    def clear(self) -> None:
        """Drop all items, ledger entries, and metadata."""

        self.state = SessionState()
        self.last_import_issues = []
