"""
Row normalizer — raw spreadsheet cells → typed field values.

Pure: no database access. Reference columns are normalized to trimmed
strings and left for the resolver; enum membership is checked there too.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from qaportal.services.bulk_import.specs import DATE, ENUM, JSON

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Days between the spreadsheet epoch (1899-12-30) and the Unix epoch
SERIAL_UNIX_OFFSET = 25569
# Serial of 9999-12-31, the last date a spreadsheet can hold
MAX_SERIAL = 2958465

_NUMERIC_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")


@dataclass
class NormalizedRow:
    row: int
    values: dict = field(default_factory=dict)

    def get(self, column: str):
        return self.values.get(column)


def cell_text(value) -> str | None:
    """Render a cell as a trimmed string; blank → None.

    Integral floats (``12.0`` from a numeric cell) lose the trailing ``.0``.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    elif isinstance(value, (datetime, date)):
        text = value.isoformat()
    else:
        text = str(value)
    text = text.strip()
    return text or None


def _serial_to_datetime(serial: float) -> datetime:
    return EPOCH + timedelta(days=serial - SERIAL_UNIX_OFFSET)


def parse_date_value(value) -> datetime | None:
    """Coerce a cell to an aware UTC datetime.

    Accepts datetime/date cells (naive values are UTC), numeric serials,
    numeric strings up to MAX_SERIAL (treated as serials) and ISO-8601
    strings, including the basic ``YYYYMMDD`` form. Raises
    ValueError when the value is none of those.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(value)
    if isinstance(value, (int, float)):
        try:
            return _serial_to_datetime(float(value))
        except OverflowError as exc:
            raise ValueError(value) from exc

    text = str(value).strip()
    if not text:
        return None
    # Longer digit runs such as 20210101 are ISO basic dates, not serials
    if _NUMERIC_RE.match(text) and abs(float(text)) <= MAX_SERIAL:
        try:
            return _serial_to_datetime(float(text))
        except OverflowError as exc:
            raise ValueError(text) from exc
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_json_value(value):
    """Parsed JSON when the cell holds valid JSON, else the trimmed text; blank → None."""
    if value is None:
        return None
    if isinstance(value, bool) or isinstance(value, (int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def normalize_enum(value) -> str | None:
    text = cell_text(value)
    if text is None:
        return None
    return text[:1].upper() + text[1:].lower()


def normalize_row(raw_row: dict, import_spec, *, row: int = 0) -> NormalizedRow | list[str]:
    """Normalize one raw row; return the collected errors instead if any field is invalid."""
    errors = []
    values = {}

    for column in import_spec.ref_columns:
        values[column] = cell_text(raw_row.get(column))

    for spec in import_spec.fields:
        raw = raw_row.get(spec.column)

        if spec.kind == DATE:
            try:
                values[spec.column] = parse_date_value(raw)
            except ValueError:
                errors.append(f"Invalid date '{raw}'")
                continue
        elif spec.kind == JSON:
            values[spec.column] = parse_json_value(raw)
        elif spec.kind == ENUM:
            values[spec.column] = normalize_enum(raw)
        else:
            values[spec.column] = cell_text(raw)

        if spec.required and values[spec.column] is None:
            errors.append(f"{spec.column} is required")

    if errors:
        return errors
    return NormalizedRow(row=row, values=values)
