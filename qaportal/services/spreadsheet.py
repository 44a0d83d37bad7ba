"""
Spreadsheet I/O — parse uploaded .xlsx / .csv files and build styled workbooks.

parse_sheet:     first worksheet (or CSV body) → list of header-keyed row dicts
build_workbook:  list of dicts → .xlsx bytes (export)
build_template:  header row + one example row → .xlsx bytes (import template)
"""

import csv
import io
import json
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
EXAMPLE_FONT = Font(italic=True, color="666666")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class ParsedSheet:
    """Header-keyed data rows (blank rows dropped) plus whole-file errors."""

    rows: list[dict] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════

def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _rows_from_matrix(matrix) -> ParsedSheet:
    """Turn an iterator of row tuples into header-keyed dicts.

    The first non-blank row is the header. Missing cells default to ``""``;
    rows whose every cell is blank are skipped.
    """
    result = ParsedSheet()
    header = None
    for values in matrix:
        if header is None:
            if all(_is_blank(v) for v in values):
                continue
            header = [str(h).strip() if h is not None else "" for h in values]
            continue
        if all(_is_blank(v) for v in values):
            continue
        row = {}
        for idx, name in enumerate(header):
            if not name:
                continue
            value = values[idx] if idx < len(values) else None
            row[name] = "" if value is None else value
        result.rows.append(row)

    if header is None:
        result.errors.append("Header row is missing")
    return result


def _parse_xlsx(data: bytes) -> ParsedSheet:
    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        if not wb.worksheets:
            return ParsedSheet(errors=["Workbook has no sheets"])
        ws = wb.worksheets[0]
        return _rows_from_matrix(ws.iter_rows(values_only=True))
    finally:
        wb.close()


def _parse_csv(data: bytes) -> ParsedSheet:
    text = data.decode("utf-8-sig")
    reader = csv.reader(io.StringIO(text))
    return _rows_from_matrix(reader)


def parse_sheet(data: bytes, filename: str | None = None) -> ParsedSheet:
    """
    Parse an uploaded workbook into header-keyed rows.

    ``.xlsx`` is detected by its zip signature (or the file extension);
    anything else is read as UTF-8 CSV. Never raises for bad input: problems
    are returned in ``ParsedSheet.errors`` with no rows.
    """
    if not data:
        return ParsedSheet(errors=["File is empty"])

    name = (filename or "").lower()
    is_xlsx = data[:2] == b"PK" or name.endswith((".xlsx", ".xlsm"))
    try:
        parsed = _parse_xlsx(data) if is_xlsx else _parse_csv(data)
    except (UnicodeDecodeError, csv.Error) as exc:
        logger.warning("CSV parse failed (%s): %s", filename or "upload", exc)
        return ParsedSheet(errors=[f"Unable to read CSV: {exc}"])
    # Truncated sheet XML surfaces as xml.etree ParseError, a SyntaxError subclass
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError, SyntaxError) as exc:
        logger.warning("Workbook parse failed (%s): %s", filename or "upload", exc)
        return ParsedSheet(errors=[f"Unable to read workbook: {exc}"])

    if parsed.errors:
        parsed.rows = []
    return parsed


# ═══════════════════════════════════════════════════════════════
# Writing
# ═══════════════════════════════════════════════════════════════

def _cell_value(value):
    """Coerce a Python value into something openpyxl can store."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, datetime):
        # Excel has no timezone support
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _write_header(ws, columns):
    for col, header in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col)].width = max(14, len(header) + 4)
    ws.freeze_panes = "A2"


def _to_bytes(wb) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_workbook(columns: list[str], rows: list[dict], sheet_title: str = "Sheet1") -> bytes:
    """Build an .xlsx with a styled header row and one row per dict."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    _write_header(ws, columns)
    for r, record in enumerate(rows, 2):
        for c, column in enumerate(columns, 1):
            ws.cell(row=r, column=c, value=_cell_value(record.get(column)))
    return _to_bytes(wb)


def build_template(columns: list[str], example: dict | None = None, sheet_title: str = "Template") -> bytes:
    """Build an import template: header row plus an optional greyed example row."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    _write_header(ws, columns)
    if example:
        for c, column in enumerate(columns, 1):
            cell = ws.cell(row=2, column=c, value=_cell_value(example.get(column)))
            cell.font = EXAMPLE_FONT
    return _to_bytes(wb)
