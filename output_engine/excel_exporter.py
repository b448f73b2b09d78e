"""
Excel exporter — writes the live feed to a formatted .xlsx file.

The workbook has two sheets:
  1. "Live Tenders"       — the tenders currently shown (after any filter)
  2. "All Tenders (Raw)"  — the whole feed, for reference

Wishlisted tenders are highlighted in amber in the Wishlisted column.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List

import openpyxl
from openpyxl.styles import (
    Alignment,
    Border,
    Font,
    PatternFill,
    Side,
)
from openpyxl.utils import get_column_letter

from feed.dates import INVALID_DATE, normalize_date
from feed.models import Tender
import config

logger = logging.getLogger(__name__)

# ── Colour fills ──────────────────────────────────────────────────────────────
FILL_WISHLIST  = PatternFill("solid", fgColor="FFC107")   # Amber
FILL_HEADER    = PatternFill("solid", fgColor="1B3A6B")   # Navy blue header
FILL_ALT_ROW   = PatternFill("solid", fgColor="F0F4FF")   # Light blue alt row

FONT_HEADER  = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
FONT_TITLE   = Font(name="Calibri", bold=True, color="1B3A6B", size=10)
FONT_BODY    = Font(name="Calibri", size=10)

THIN_BORDER = Border(
    left=Side(style="thin", color="D0D7E5"),
    right=Side(style="thin", color="D0D7E5"),
    top=Side(style="thin", color="D0D7E5"),
    bottom=Side(style="thin", color="D0D7E5"),
)

COLUMN_DEFS = [
    # (header,        width, wire field or Tender method)
    ("#",             5,     None),
    ("Tender ID",     22,    "tender_id_str"),
    ("TDR",           16,    "tdr"),
    ("Title",         48,    "tender_name"),
    ("Organisation",  30,    "company_name"),
    ("City",          16,    "city"),
    ("State",         16,    "state"),
    ("Value",         18,    "display_value"),
    ("EMD",           14,    "display_emd"),
    ("Published",     13,    "publish_date"),
    ("Submission",    13,    "submission_date"),
    ("Wishlisted",    11,    "is_wishlisted"),
]


def _get_value(tender: Tender, attr: str):
    """Extract a display value from a Tender using a field name or method name."""
    if attr is None:
        return ""
    method = getattr(Tender, attr, None)
    if callable(method):
        return method(tender)
    val = tender.get(attr)
    if attr in ("publish_date", "submission_date") and val:
        normalised = normalize_date(val)
        return val if normalised == INVALID_DATE else normalised
    if isinstance(val, bool):
        return "✓" if val else "✗"
    if val is None or val == "":
        return "—"
    return val


def _write_sheet(
    ws,
    tenders: List[Tender],
    title: str,
    run_date: str,
) -> None:
    """Write the tender list into a worksheet."""

    # ── Title row ─────────────────────────────────────────────────────────────
    ws.merge_cells(f"A1:{get_column_letter(len(COLUMN_DEFS))}1")
    title_cell = ws["A1"]
    title_cell.value = f"{title}  |  Exported: {run_date}  |  {len(tenders)} result(s)"
    title_cell.font = Font(name="Calibri", bold=True, size=13, color="1B3A6B")
    title_cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.row_dimensions[1].height = 24

    # ── Header row ────────────────────────────────────────────────────────────
    for col_idx, (header, width, _) in enumerate(COLUMN_DEFS, start=1):
        cell = ws.cell(row=2, column=col_idx, value=header)
        cell.font = FONT_HEADER
        cell.fill = FILL_HEADER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.row_dimensions[2].height = 22

    # ── Data rows ─────────────────────────────────────────────────────────────
    for row_idx, tender in enumerate(tenders, start=1):
        excel_row = row_idx + 2
        alt = (row_idx % 2 == 0)

        for col_idx, (header, _, attr) in enumerate(COLUMN_DEFS, start=1):
            value = row_idx if header == "#" else _get_value(tender, attr)

            cell = ws.cell(row=excel_row, column=col_idx, value=value)
            cell.border = THIN_BORDER
            cell.font = FONT_BODY
            cell.alignment = Alignment(
                vertical="center",
                wrap_text=(header in ("Title", "Organisation")),
            )

            if alt:
                cell.fill = FILL_ALT_ROW

            if header == "Title":
                cell.font = FONT_TITLE

            if header == "Wishlisted" and tender.is_wishlisted:
                cell.fill = FILL_WISHLIST
                cell.alignment = Alignment(horizontal="center", vertical="center")

        ws.row_dimensions[excel_row].height = 36

    # ── Freeze panes & auto-filter ────────────────────────────────────────────
    ws.freeze_panes = "A3"
    ws.auto_filter.ref = f"A2:{get_column_letter(len(COLUMN_DEFS))}{len(tenders) + 2}"


def export_to_excel(
    shown: List[Tender],
    all_tenders: List[Tender],
    output_dir: str = None,
) -> str:
    """
    Write two-sheet Excel file and return the file path.

    Args:
        shown:       Tenders after filtering (Live Tenders sheet).
        all_tenders: The whole feed (All Tenders sheet).
        output_dir:  Directory to save the file. Defaults to config.OUTPUT_DIR.

    Returns:
        Absolute path of the saved .xlsx file.
    """
    out_dir = Path(output_dir or config.OUTPUT_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)

    run_date = datetime.now().strftime("%d %b %Y %H:%M")
    date_tag = datetime.now().strftime("%Y-%m-%d")
    filename = config.OUTPUT_FILENAME.format(date=date_tag)
    filepath = out_dir / filename

    wb = openpyxl.Workbook()

    ws1 = wb.active
    ws1.title = "Live Tenders"
    _write_sheet(ws1, shown, "Live Tenders", run_date)

    ws2 = wb.create_sheet("All Tenders (Raw)")
    _write_sheet(ws2, all_tenders, "All Tenders in Feed", run_date)

    wb.save(filepath)
    logger.info("Excel saved: %s", filepath.resolve())
    return str(filepath.resolve())
