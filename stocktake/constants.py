"""Shared constants for workbook layout, numeric tolerance, and SKU allocation."""

from __future__ import annotations

from typing import Final

EPSILON: Final = 1e-9

MOVEMENT_WINDOW_DAYS: Final = 30

AUTO_SKU_PREFIX: Final = "SKU-"
AUTO_SKU_PAD_LENGTH: Final = 4

DEFAULT_CATEGORY: Final = "Uncategorised"
DEFAULT_OPERATOR: Final = "Manual entry"
NEW_ITEM_NOTE: Final = "New item"

INVENTORY_SHEET_NAME: Final = "Stocktake"
MOVEMENTS_SHEET_NAME: Final = "Movements"
SUMMARY_SHEET_NAME: Final = "Summary"
SUMMARY_TITLE: Final = "Stocktake Inventory Tool"

REQUIRED_COLUMNS: Final = {
    "sku": "SKU",
    "name": "Item",
    "category": "Category",
    "count": "Count",
    "unit_cost": "Unit Cost",
    "last_updated": "Last Updated",
}
NOTE_COLUMN: Final = "Note"

TEMPLATE_HEADERS: Final = tuple(REQUIRED_COLUMNS.values())
EXPORT_HEADERS: Final = (*TEMPLATE_HEADERS, NOTE_COLUMN)

TEMPLATE_SAMPLE_ROWS: Final = (
    ("DEMO-001", "Shampoo", "Bath", 120, 6.5, "2025-01-01"),
    ("DEMO-002", "Conditioner", "Bath", 85, 6.5, "2025-01-01"),
    ("DEMO-003", "Soap Bar", "Bath", 220, 2.5, "2025-01-01"),
)

MOVEMENT_HEADERS: Final = (
    "SKU",
    "Item",
    "Category",
    "Previous Count",
    "Sold",
    "Received",
    "New Count",
    "Delta",
    "Unit Cost",
    "Sold Value",
    "Received Value",
    "Value Change",
    "Performed By",
    "Notes",
    "Item Note",
    "Timestamp",
)

INVENTORY_COLUMN_WIDTHS: Final = (14, 28, 18, 12, 14, 16, 28)
MOVEMENT_COLUMN_WIDTHS: Final = (14, 26, 18, 14, 12, 12, 14, 12, 12, 14, 14, 16, 18, 28, 28, 22)
SUMMARY_COLUMN_WIDTHS: Final = (20, 28)
