"""
Bulk tabular import of test cases and defects.

    from qaportal.services.bulk_import import run_import

    summary = run_import(data, "defect", filename="defects.xlsx", actor_user_id=1)
    summary.to_dict()  # {"summary": {...}, "created": [...], "failed": [...], "parseErrors": [...]}
"""

from qaportal.services.bulk_import.normalizer import NormalizedRow, normalize_row
from qaportal.services.bulk_import.orchestrator import ImportSummary, run_import
from qaportal.services.bulk_import.reference_index import ReferenceIndex, load_reference_index
from qaportal.services.bulk_import.resolver import (
    ResolvedPayload,
    RowFailure,
    RowSuccess,
    resolve_row,
)
from qaportal.services.bulk_import.specs import (
    DEFECT_SPEC,
    IMPORT_SPECS,
    TEST_CASE_SPEC,
    get_import_spec,
)
from qaportal.services.bulk_import.executor import upsert

__all__ = [
    "DEFECT_SPEC",
    "IMPORT_SPECS",
    "ImportSummary",
    "NormalizedRow",
    "ReferenceIndex",
    "ResolvedPayload",
    "RowFailure",
    "RowSuccess",
    "TEST_CASE_SPEC",
    "get_import_spec",
    "load_reference_index",
    "normalize_row",
    "resolve_row",
    "run_import",
    "upsert",
]
