"""Tests for sequential SKU allocation."""

from __future__ import annotations

from stocktake.models import InventoryItem
from stocktake.sku import extract_sku_number, format_sku, next_sku_number


def _items(*skus: str) -> list[InventoryItem]:
    return [InventoryItem(id=str(index), sku=sku, name=sku) for index, sku in enumerate(skus)]


def test_extract_sku_number_uses_last_digit_run() -> None:
    """Only the final run of digits counts."""
    assert extract_sku_number("SKU-0042") == 42
    assert extract_sku_number("A1-B22-C333x") == 333
    assert extract_sku_number("NO-DIGITS") is None
    assert extract_sku_number("") is None


def test_next_sku_number_is_one_past_the_highest() -> None:
    """Allocation continues after the largest number found."""
    assert next_sku_number(_items("DEMO-001", "SKU-0017", "X9")) == 18


def test_next_sku_number_uses_fallback_without_numbers() -> None:
    """No numeric SKUs means the fallback is returned."""
    assert next_sku_number([]) == 1
    assert next_sku_number(_items("ALPHA", ""), fallback=5) == 5


def test_format_sku_pads_to_four_digits() -> None:
    """Allocated SKUs share a prefix and fixed width."""
    assert format_sku(7) == "SKU-0007"
    assert format_sku(12345) == "SKU-12345"
