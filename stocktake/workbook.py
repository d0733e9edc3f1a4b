"""Reading and writing stocktake workbooks (.xlsx) with openpyxl."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from .constants import (
    EXPORT_HEADERS,
    INVENTORY_COLUMN_WIDTHS,
    INVENTORY_SHEET_NAME,
    MOVEMENT_COLUMN_WIDTHS,
    MOVEMENT_HEADERS,
    MOVEMENTS_SHEET_NAME,
    SUMMARY_COLUMN_WIDTHS,
    SUMMARY_SHEET_NAME,
    TEMPLATE_HEADERS,
    TEMPLATE_SAMPLE_ROWS,
)
from .importer import RawImport, WorkbookStructureError, item_rows, ledger_rows, summary_rows
from .logging_config import get_logger
from .models import InventoryItem, LedgerEntry, Metadata
from .normalize import normalize_text, parse_timestamp

logger = get_logger("workbook")


def _cell_value(value: Any) -> Any:
    """Trim text cells and collapse empty cells to `""`."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


def _to_excel(value: Any) -> Any:
    """Convert aware datetimes to naive UTC for storage in a cell."""

    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _sheet_records(sheet: Worksheet) -> tuple[list[str], list[dict[str, Any]]]:
    """Return the header row and one dict per non-blank data row."""

    rows = sheet.iter_rows(values_only=True)
    header_row = next(rows, None) or ()
    headers = [normalize_text(value) for value in header_row]

    records: list[dict[str, Any]] = []
    for values in rows:
        cells = [_cell_value(value) for value in values]
        if not any(cell != "" for cell in cells):
            continue
        records.append({header: cell for header, cell in zip(headers, cells) if header})
    return [header for header in headers if header], records


def _summary_value(sheet: Worksheet, label: str) -> Any:
    """Return the value next to `label` on the summary sheet, if present."""

    for values in sheet.iter_rows(values_only=True):
        if values and normalize_text(values[0]).casefold() == label.casefold():
            return values[1] if len(values) > 1 else None
    return None


def read_workbook(path: str | Path, *, imported_at: datetime | None = None) -> RawImport:
    """Read a workbook into raw records for `normalize_import`.

    The first sheet is the inventory sheet. A `Movements` sheet supplies prior
    ledger rows and a `Summary` sheet supplies the last stocktake time. Files
    openpyxl cannot open raise `WorkbookStructureError`.
    """

    workbook_path = Path(path)
    try:
        workbook = load_workbook(workbook_path, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile) as exc:
        raise WorkbookStructureError(f"Not a readable .xlsx workbook: {workbook_path.name}") from exc
    try:
        if not workbook.sheetnames:
            raise WorkbookStructureError("No sheets found in the workbook.")
        sheet_name = workbook.sheetnames[0]
        headers, rows = _sheet_records(workbook[sheet_name])

        movement_rows: list[dict[str, Any]] = []
        if MOVEMENTS_SHEET_NAME in workbook.sheetnames and MOVEMENTS_SHEET_NAME != sheet_name:
            _, movement_rows = _sheet_records(workbook[MOVEMENTS_SHEET_NAME])

        last_stocktake_at = None
        if SUMMARY_SHEET_NAME in workbook.sheetnames and SUMMARY_SHEET_NAME != sheet_name:
            last_stocktake_at = parse_timestamp(_summary_value(workbook[SUMMARY_SHEET_NAME], "Last Stocktake"))
    finally:
        workbook.close()

    logger.info(
        "workbook_read",
        extra={"path": str(workbook_path), "sheet_name": sheet_name, "row_count": len(rows)},
    )
    return RawImport(
        headers=headers,
        rows=rows,
        sheet_name=sheet_name,
        source_file_name=workbook_path.name,
        imported_at=imported_at or datetime.now(timezone.utc),
        last_stocktake_at=last_stocktake_at,
        movement_rows=movement_rows,
    )


def _append_sheet(
    workbook: Workbook,
    title: str,
    rows: Sequence[Sequence[Any]],
    widths: Sequence[int],
) -> Worksheet:
    """Create a sheet, write `rows` to it, and apply column widths."""

    sheet = workbook.create_sheet(title=title)
    for row in rows:
        sheet.append([_to_excel(value) for value in row])
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    return sheet


def _save(workbook: Workbook, path: str | Path) -> Path:
    """Save `workbook` to `path`, creating parent directories."""

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(output_path)
    return output_path


def write_workbook(
    path: str | Path,
    items: Sequence[InventoryItem],
    metadata: Metadata,
    ledger: Sequence[LedgerEntry],
    *,
    generated_at: datetime | None = None,
) -> Path:
    """Write the item, movement, and summary sheets for the current session.

    The movement sheet is omitted while the ledger is empty.
    """

    workbook = Workbook()
    workbook.remove(workbook.active)
    _append_sheet(
        workbook,
        metadata.sheet_name or INVENTORY_SHEET_NAME,
        [EXPORT_HEADERS, *item_rows(items)],
        INVENTORY_COLUMN_WIDTHS,
    )
    if ledger:
        _append_sheet(workbook, MOVEMENTS_SHEET_NAME, [MOVEMENT_HEADERS, *ledger_rows(ledger)], MOVEMENT_COLUMN_WIDTHS)
    _append_sheet(
        workbook,
        SUMMARY_SHEET_NAME,
        summary_rows(items, metadata, generated_at or datetime.now(timezone.utc)),
        SUMMARY_COLUMN_WIDTHS,
    )
    output_path = _save(workbook, path)
    logger.info(
        "workbook_written",
        extra={"path": str(output_path), "item_count": len(items), "ledger_count": len(ledger)},
    )
    return output_path


def write_template(path: str | Path, *, with_samples: bool = True) -> Path:
    """Write an import template, optionally seeded with demo rows."""

    rows: list[Sequence[Any]] = [TEMPLATE_HEADERS]
    if with_samples:
        rows.extend(TEMPLATE_SAMPLE_ROWS)
    workbook = Workbook()
    workbook.remove(workbook.active)
    _append_sheet(workbook, INVENTORY_SHEET_NAME, rows, INVENTORY_COLUMN_WIDTHS[: len(TEMPLATE_HEADERS)])
    return _save(workbook, path)
