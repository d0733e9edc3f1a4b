"""Command-line runner for stocktake workbooks.

Generates import templates, reports on a workbook's stock position as JSON,
and applies a CSV of sold/received adjustments as one stocktake round.
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from stocktake import StocktakeSession, WorkbookStructureError, read_workbook, write_template, write_workbook
from stocktake.aggregates import category_breakdown, least_moved, movement_summary, mover_totals, top_outflow
from stocktake.constants import MOVEMENT_WINDOW_DAYS
from stocktake.logging_config import configure_logging, get_logger
from stocktake.models import DataIssue

DEFAULT_REPORT_OUTPUT = Path("output/stocktake_report.json")
DEFAULT_WORKBOOK_OUTPUT_DIR = Path("output")

logger = get_logger("cli")


def _issue_to_dict(issue: DataIssue) -> dict[str, Any]:
    """Serialize a `DataIssue` into a JSON-friendly dictionary."""

    return {
        "code": issue.code,
        "field": issue.field,
        "message": issue.message,
        "row": issue.row,
    }


def _json_default(value: Any) -> Any:
    """Serialize datetimes as ISO-8601 for `json.dumps`."""

    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_report(
    *,
    workbook_path: Path,
    window_days: int = MOVEMENT_WINDOW_DAYS,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build a stock position report for one workbook."""

    now = now or datetime.now(timezone.utc)
    session = StocktakeSession()
    session.load_import(read_workbook(workbook_path, imported_at=now))

    recent = session.recent_movements(window_days, now=now)
    movers = mover_totals(session.items, recent)
    return {
        "metadata": {
            "generated_at_utc": now.isoformat(),
            "workbook_path": str(workbook_path),
            "sheet_name": session.metadata.sheet_name,
            "last_stocktake_at": session.metadata.last_stocktake_at,
            "next_sku_number": session.metadata.next_sku_number,
            "movement_window_days": window_days,
        },
        "totals": session.totals,
        "category_breakdown": category_breakdown(session.items),
        "recent_movements": {
            "entry_count": len(recent),
            "summary": movement_summary(recent),
            "top_outflow": top_outflow(movers),
            "least_moved": least_moved(movers),
        },
        "data_quality_issues": [_issue_to_dict(issue) for issue in session.last_import_issues],
    }


def write_report(report: dict[str, Any], *, output_path: Path) -> None:
    """Write report JSON to disk."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(report, indent=2, sort_keys=True, default=_json_default) + "\n",
        encoding="utf-8",
    )


def read_adjustments(csv_path: Path) -> list[dict[str, str]]:
    """Read `sku,sold,received` rows; blank SKUs are skipped."""

    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        fields = {(name or "").strip().lower() for name in reader.fieldnames or []}
        if "sku" not in fields:
            raise WorkbookStructureError("Adjustments CSV must have a 'sku' column")
        rows: list[dict[str, str]] = []
        for raw_row in reader:
            row = {(key or "").strip().lower(): (value or "").strip() for key, value in raw_row.items()}
            if row.get("sku"):
                rows.append(row)
    return rows


def apply_adjustments(
    *,
    workbook_path: Path,
    adjustments_path: Path,
    performed_by: str,
    notes: str = "",
    output_path: Path | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Import a workbook, stage CSV drafts, commit them, and write the result."""

    session = StocktakeSession()
    session.load_import(read_workbook(workbook_path))

    ids_by_sku = {item.sku.casefold(): item.id for item in reversed(session.items) if item.sku}
    unknown_skus: list[str] = []
    for row in read_adjustments(adjustments_path):
        item_id = ids_by_sku.get(row["sku"].casefold())
        if item_id is None:
            unknown_skus.append(row["sku"])
            continue
        session.update_draft(item_id, "draft_sold", row.get("sold", ""))
        session.update_draft(item_id, "draft_received", row.get("received", ""))

    if unknown_skus:
        logger.warning("adjustments_unknown_skus", extra={"skus": unknown_skus})

    preview = session.draft_summary
    entries = session.apply_stocktake(performed_by, notes, timestamp=timestamp)
    output_path = output_path or DEFAULT_WORKBOOK_OUTPUT_DIR / f"{workbook_path.stem}-updated.xlsx"
    write_workbook(output_path, session.items, session.metadata, session.ledger)
    return {
        "output": str(output_path),
        "entries": [asdict(entry) for entry in entries],
        "draft_summary": preview,
        "unknown_skus": unknown_skus,
    }


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(description="Stocktake workbook tooling.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level (logs go to stderr)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    template = commands.add_parser("template", help="Write an import template workbook")
    template.add_argument("output", type=Path, help="Path of the .xlsx file to write")
    template.add_argument("--blank", action="store_true", help="Write headers only, without sample rows")

    report = commands.add_parser("report", help="Summarise a workbook as JSON")
    report.add_argument("workbook", type=Path, help="Workbook to read")
    report.add_argument("--output", type=Path, default=DEFAULT_REPORT_OUTPUT, help="Output JSON path")
    report.add_argument("--window-days", type=int, default=MOVEMENT_WINDOW_DAYS, help="Movement window in days")

    apply = commands.add_parser("apply", help="Apply a CSV of sold/received adjustments")
    apply.add_argument("workbook", type=Path, help="Workbook to update")
    apply.add_argument("--adjustments", type=Path, required=True, help="CSV with sku,sold,received columns")
    apply.add_argument("--performed-by", required=True, help="Who performed this stocktake round")
    apply.add_argument("--notes", default="", help="Notes recorded on every movement")
    apply.add_argument("--output", type=Path, default=None, help="Updated workbook path")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for command-line execution."""

    args = _parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level))

    try:
        if args.command == "template":
            path = write_template(args.output, with_samples=not args.blank)
            print(f"Wrote template: {path}")
        elif args.command == "report":
            report = build_report(workbook_path=args.workbook, window_days=args.window_days)
            write_report(report, output_path=args.output)
            print(f"Wrote stocktake report: {args.output}")
        else:
            result = apply_adjustments(
                workbook_path=args.workbook,
                adjustments_path=args.adjustments,
                performed_by=args.performed_by,
                notes=args.notes,
                output_path=args.output,
            )
            if not result["entries"]:
                print("No movements recorded.")
            print(f"Wrote updated workbook: {result['output']} ({len(result['entries'])} movements)")
    except (WorkbookStructureError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
