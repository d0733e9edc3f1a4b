"""Import/export boundary tests.

Raw rows are handcrafted dicts, the same shape a workbook reader hands over,
so normalization rules are checked without touching the file system.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from stocktake.importer import (
    RawImport,
    WorkbookStructureError,
    ensure_required_columns,
    item_rows,
    ledger_rows,
    normalize_import,
    summary_rows,
)
from stocktake.models import CostLayer, InventoryItem, Metadata

HEADERS = ["SKU", "Item", "Category", "Count", "Unit Cost", "Last Updated"]
IMPORTED_AT = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _issue_codes(issues: list[object]) -> set[str]:
    return {issue.code for issue in issues}


def _payload(rows: list[dict[str, object]], **changes: object) -> RawImport:
    payload = RawImport(
        headers=HEADERS,
        rows=rows,
        sheet_name="Stocktake",
        source_file_name="stock.xlsx",
        imported_at=IMPORTED_AT,
    )
    for key, value in changes.items():
        setattr(payload, key, value)
    return payload


def test_ensure_required_columns_is_case_insensitive() -> None:
    """Header matching ignores case and surrounding whitespace."""
    ensure_required_columns([" sku ", "ITEM", "category", "count", "unit cost", "last updated"])


def test_missing_required_columns_abort_before_rows_are_read() -> None:
    """Missing columns raise and list every missing title."""
    with pytest.raises(WorkbookStructureError, match="Missing required columns: Unit Cost, Last Updated"):
        normalize_import(_payload([{"SKU": "A"}], headers=["SKU", "Item", "Category", "Count"]))


def test_normalize_import_builds_items_with_synthetic_layers() -> None:
    """Each row becomes an item with one layer stamped with its last update."""
    result = normalize_import(
        _payload(
            [
                {
                    "SKU": "DEMO-001",
                    "Item": " Shampoo ",
                    "Category": "Bath",
                    "Count": "120",
                    "Unit Cost": "$6.50",
                    "Last Updated": "2025-01-01",
                    "Note": "top shelf",
                },
            ]
        )
    )

    item = result.items[0]
    assert item.id == "DEMO-001"
    assert item.name == "Shampoo"
    assert item.current_count == 120
    assert item.last_count == 120
    assert item.unit_cost == 6.5
    assert item.item_note == "top shelf"
    assert item.last_updated == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert item.cost_layers == (CostLayer(quantity=120.0, unit_cost=6.5, acquired_at=item.last_updated),)
    assert item.draft_sold == ""
    assert result.issues == []


def test_normalize_import_defaults_and_disambiguates_ids() -> None:
    """Blank fields get defaults and colliding ids get numeric suffixes."""
    rows = [
        {"SKU": "A", "Item": "One", "Category": "", "Count": 1, "Unit Cost": 1, "Last Updated": ""},
        {"SKU": "A", "Item": "Two", "Category": "Bath", "Count": 1, "Unit Cost": 1, "Last Updated": ""},
        {"SKU": "A", "Item": "Three", "Category": "Bath", "Count": 1, "Unit Cost": 1, "Last Updated": ""},
        {"SKU": "", "Item": "", "Category": "Bath", "Count": 1, "Unit Cost": 1, "Last Updated": ""},
    ]
    result = normalize_import(_payload(rows))

    assert [item.id for item in result.items] == ["A", "A-1", "A-2", "Item 4"]
    assert result.items[0].category == "Uncategorised"
    assert result.items[3].name == "Item 4"
    assert result.items[0].cost_layers[0].acquired_at == IMPORTED_AT


def test_malformed_cells_degrade_and_are_reported() -> None:
    """Bad numbers become 0 and bad dates become None, with issues recorded."""
    rows = [
        {"SKU": "A", "Item": "One", "Category": "Bath", "Count": "lots", "Unit Cost": "?", "Last Updated": "soon"},
    ]
    result = normalize_import(_payload(rows))

    item = result.items[0]
    assert item.current_count == 0
    assert item.unit_cost == 0
    assert item.last_updated is None
    assert item.cost_layers == ()
    assert _issue_codes(result.issues) == {"invalid_number", "invalid_date"}
    assert result.rows_with_issues == 1


def test_supplied_cost_layers_are_used_when_they_match_the_count() -> None:
    """Per-batch detail survives import when it adds up."""
    layers = [
        {"quantity": 4, "unit_cost": 2, "acquired_at": "2025-01-01"},
        CostLayer(quantity=6, unit_cost=3),
    ]
    row = {"SKU": "A", "Item": "One", "Category": "Bath", "Count": 10, "Unit Cost": 3, "Last Updated": "", "cost_layers": layers}
    result = normalize_import(_payload([row]))

    assert [layer.quantity for layer in result.items[0].cost_layers] == [4.0, 6.0]
    assert result.issues == []


def test_mismatched_cost_layers_are_replaced() -> None:
    """Layers that disagree with the count fall back to one synthetic layer."""
    row = {
        "SKU": "A",
        "Item": "One",
        "Category": "Bath",
        "Count": 10,
        "Unit Cost": 3,
        "Last Updated": "",
        "cost_layers": [{"quantity": 4, "unit_cost": 2}],
    }
    result = normalize_import(_payload([row]))

    assert result.items[0].cost_layers == (CostLayer(quantity=10.0, unit_cost=3.0, acquired_at=IMPORTED_AT),)
    assert _issue_codes(result.issues) == {"cost_layers_replaced"}


def test_movement_rows_become_ledger_entries_with_derived_values() -> None:
    """Missing value columns are derived from quantities and unit cost."""
    movement_rows = [
        {
            "SKU": "A",
            "Item": "One",
            "Category": "Bath",
            "Previous Count": 10,
            "Sold": 4,
            "Received": 0,
            "New Count": 6,
            "Unit Cost": 2,
            "Performed By": "Sam",
            "Timestamp": "2025-02-01T10:00:00",
        }
    ]
    rows = [{"SKU": "A", "Item": "One", "Category": "Bath", "Count": 6, "Unit Cost": 2, "Last Updated": ""}]
    result = normalize_import(_payload(rows, movement_rows=movement_rows))

    entry = result.ledger[0]
    assert entry.item_id == "A"
    assert entry.delta == -4
    assert entry.sold_value == 8
    assert entry.sold_unit_cost == 2
    assert entry.value_impact == -8
    assert entry.performed_by == "Sam"
    assert result.metadata.last_stocktake_at == datetime(2025, 2, 1, 10, tzinfo=timezone.utc)


def test_import_metadata() -> None:
    """Metadata is rebuilt from the payload and the imported SKUs."""
    rows = [{"SKU": "SKU-0041", "Item": "One", "Category": "Bath", "Count": 1, "Unit Cost": 1, "Last Updated": ""}]
    stamped = datetime(2025, 2, 2, tzinfo=timezone.utc)
    result = normalize_import(_payload(rows, last_stocktake_at=stamped))

    assert result.metadata == Metadata(
        source_file_name="stock.xlsx",
        last_imported_at=IMPORTED_AT,
        last_stocktake_at=stamped,
        sheet_name="Stocktake",
        next_sku_number=42,
    )


def test_export_rows_use_weighted_layer_cost() -> None:
    """The item sheet's cost column reflects what remains on hand."""
    item = InventoryItem(
        id="a",
        sku="A",
        name="One",
        category="Bath",
        unit_cost=9,
        current_count=20,
        cost_layers=(CostLayer(quantity=10, unit_cost=4), CostLayer(quantity=10, unit_cost=6)),
        item_note="note",
    )
    assert item_rows([item]) == [["A", "One", "Bath", 20, 5.0, "", "note"]]

    empty = InventoryItem(id="b", sku="B", name="Two", unit_cost=9)
    assert item_rows([empty])[0][4] == 9


def test_summary_and_ledger_rows() -> None:
    """Summary rows carry headline totals; ledger rows keep ledger order."""
    item = InventoryItem(
        id="a",
        sku="A",
        name="One",
        current_count=10,
        cost_layers=(CostLayer(quantity=10, unit_cost=2),),
    )
    rows = summary_rows([item], Metadata(source_file_name="stock.xlsx"), IMPORTED_AT)
    labels = {row[0]: row[1] for row in rows if len(row) == 2}

    assert labels["Generated At"] == IMPORTED_AT
    assert labels["Source File"] == "stock.xlsx"
    assert labels["Total SKUs"] == 1
    assert labels["Units On Hand"] == 10
    assert labels["Inventory Value"] == 20
    assert ledger_rows([]) == []


def test_negative_count_is_reported_and_clamped() -> None:
    """A negative count is flagged and stored as zero so layers match the count."""
    rows = [{"SKU": "A", "Item": "One", "Category": "Bath", "Count": "-5", "Unit Cost": 2, "Last Updated": ""}]
    result = normalize_import(_payload(rows))

    item = result.items[0]
    assert item.current_count == 0
    assert item.last_count == 0
    assert item.cost_layers == ()
    assert [(issue.code, issue.row) for issue in result.issues] == [("negative_quantity", 2)]
