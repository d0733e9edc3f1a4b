"""Sequential SKU allocation for manually registered items."""

from __future__ import annotations

import re
from collections.abc import Iterable

from .constants import AUTO_SKU_PAD_LENGTH, AUTO_SKU_PREFIX
from .models import InventoryItem

_LAST_DIGIT_RUN_RE = re.compile(r"(\d+)(?!.*\d)")


def extract_sku_number(sku: str | None) -> int | None:
    """Return the last contiguous run of digits in `sku`, if any."""

    if not sku:
        return None
    match = _LAST_DIGIT_RUN_RE.search(str(sku))
    return int(match.group(1)) if match else None


def next_sku_number(items: Iterable[InventoryItem], fallback: int = 1) -> int:
    """Return one past the highest SKU number in use, or `fallback` when none is found."""

    highest = fallback - 1
    for item in items:
        candidate = extract_sku_number(item.sku)
        if candidate is not None and candidate > highest:
            highest = candidate
    return highest + 1


def format_sku(number: int) -> str:
    """Format an allocated number as a prefixed, zero-padded SKU."""

    return f"{AUTO_SKU_PREFIX}{number:0{AUTO_SKU_PAD_LENGTH}d}"
