"""Public API exports for the stocktake valuation engine."""

from .aggregates import draft_summary, recent_movements, totals
from .importer import RawImport, WorkbookStructureError, normalize_import
from .layers import initial_layers, merge_layers, total_quantity, total_value
from .models import CostLayer, CostMovement, DataIssue, ImportResult, InventoryItem, LedgerEntry, Metadata
from .movement import compute_movement, preview_draft_impact
from .normalize import normalize_number, parse_adjustment
from .session import SessionState, StocktakeSession
from .sku import format_sku, next_sku_number
from .transaction import RegistrationResult, StocktakeResult, commit_stocktake, register_manual_item
from .workbook import read_workbook, write_template, write_workbook

__all__ = [
    "CostLayer",
    "CostMovement",
    "DataIssue",
    "ImportResult",
    "InventoryItem",
    "LedgerEntry",
    "Metadata",
    "RawImport",
    "RegistrationResult",
    "SessionState",
    "StocktakeResult",
    "StocktakeSession",
    "WorkbookStructureError",
    "commit_stocktake",
    "compute_movement",
    "draft_summary",
    "format_sku",
    "initial_layers",
    "merge_layers",
    "next_sku_number",
    "normalize_import",
    "normalize_number",
    "parse_adjustment",
    "preview_draft_impact",
    "read_workbook",
    "recent_movements",
    "register_manual_item",
    "total_quantity",
    "total_value",
    "totals",
    "write_template",
    "write_workbook",
]
