"""
Import orchestrator — parse → index → (normalize → resolve → upsert) per row.

Rows are processed strictly in file order and independently: a failing row
is recorded and the run moves on.
"""

import logging
from dataclasses import dataclass, field

from qaportal.services.bulk_import.normalizer import normalize_row
from qaportal.services.bulk_import.reference_index import load_reference_index
from qaportal.services.bulk_import.resolver import RowFailure, RowSuccess, resolve_row
from qaportal.services.bulk_import.specs import get_import_spec
from qaportal.services.bulk_import.executor import upsert
from qaportal.services.spreadsheet import parse_sheet

logger = logging.getLogger(__name__)

# Header occupies row 1 of the sheet
FIRST_DATA_ROW = 2


@dataclass
class ImportSummary:
    created: list[RowSuccess] = field(default_factory=list)
    failed: list[RowFailure] = field(default_factory=list)
    parse_errors: list[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "summary": {"created": len(self.created), "failed": len(self.failed)},
            "created": [c.to_dict() for c in self.created],
            "failed": [f.to_dict() for f in self.failed],
            "parseErrors": list(self.parse_errors),
        }


def run_import(file_bytes: bytes, kind: str, *, filename=None, actor_user_id=None) -> ImportSummary:
    """
    Import every row of ``file_bytes`` as ``kind`` ("test_case" or "defect").

    Raises:
        ValueError: unknown ``kind``.
        ImportAbortedError: the reference index could not be loaded.
    """
    import_spec = get_import_spec(kind)
    parsed = parse_sheet(file_bytes, filename)
    summary = ImportSummary(parse_errors=list(parsed.errors))
    if not parsed.rows:
        return summary

    index = load_reference_index(import_spec)

    for offset, raw_row in enumerate(parsed.rows):
        row = offset + FIRST_DATA_ROW
        normalized = normalize_row(raw_row, import_spec, row=row)
        if isinstance(normalized, list):
            summary.failed.append(RowFailure(row, normalized))
            continue

        resolved = resolve_row(normalized, index, import_spec)
        if isinstance(resolved, RowFailure):
            summary.failed.append(resolved)
            continue

        outcome = upsert(resolved, import_spec, actor_user_id)
        if isinstance(outcome, RowFailure):
            summary.failed.append(outcome)
        else:
            summary.created.append(outcome)

    logger.info(
        "%s import finished: %d ok, %d failed",
        kind, len(summary.created), len(summary.failed),
        extra={"import_kind": kind, "import_file": filename, "user_id": actor_user_id},
    )
    return summary
