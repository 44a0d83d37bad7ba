"""
Import specs — per-entity description of spreadsheet columns.

An ``ImportSpec`` tells the normalizer how to coerce each column, the
resolver which reference columns to look up and which values to validate,
and the upsert executor which model and natural key to use.
"""

from dataclasses import dataclass, field

from qaportal.models.testing import (
    DEFECT_PRIORITIES,
    DEFECT_SEVERITIES,
    DEFECT_STATUSES,
    TEST_CASE_COMPLEXITIES,
    TEST_CASE_SEVERITIES,
    TEST_CASE_STATUSES,
    Defect,
    DefectFile,
    TestCase,
    TestCaseFile,
)

# Column kinds understood by the normalizer
STRING = "string"
TEXT = "text"
ENUM = "enum"
DATE = "date"
JSON = "json"

PROJECT_COLUMNS = ("projectId", "projectCode", "projectName")


@dataclass(frozen=True)
class FieldSpec:
    column: str
    attr: str | None
    kind: str = STRING
    required: bool = False
    max_length: int | None = None
    choices: tuple = ()


@dataclass(frozen=True)
class UserRef:
    """A user reference resolved by id column first, then email column."""

    name: str
    attr: str

    @property
    def id_column(self) -> str:
        return f"{self.name}Id"

    @property
    def email_column(self) -> str:
        return f"{self.name}Email"


@dataclass(frozen=True)
class ImportSpec:
    kind: str
    entity_type: str
    model: type
    file_model: type
    code_attr: str
    file_attr: str
    file_label: str
    file_id_column: str
    file_name_column: str
    fields: tuple
    user_refs: tuple = field(default_factory=tuple)

    @property
    def code_column(self) -> str:
        return next(f.column for f in self.fields if f.attr == self.code_attr)

    @property
    def columns(self) -> list[str]:
        """All columns, in template / export order."""
        cols = list(PROJECT_COLUMNS)
        cols += [self.file_id_column, self.file_name_column]
        cols += [f.column for f in self.fields]
        for ref in self.user_refs:
            cols += [ref.id_column, ref.email_column]
        return cols

    @property
    def ref_columns(self) -> list[str]:
        cols = list(PROJECT_COLUMNS) + [self.file_id_column, self.file_name_column]
        for ref in self.user_refs:
            cols += [ref.id_column, ref.email_column]
        return cols

    @property
    def assignable_attrs(self) -> list[str]:
        """Model attributes overwritten on every upsert."""
        attrs = [f.attr for f in self.fields if f.attr and f.attr != self.code_attr]
        attrs.append(self.file_attr)
        attrs += [ref.attr for ref in self.user_refs]
        return attrs


TEST_CASE_SPEC = ImportSpec(
    kind="test_case",
    entity_type="test_case",
    model=TestCase,
    file_model=TestCaseFile,
    code_attr="test_case_id_code",
    file_attr="test_case_file_id",
    file_label="Test case file",
    file_id_column="testCaseFileId",
    file_name_column="testCaseFileName",
    fields=(
        FieldSpec("testCaseIdCode", "test_case_id_code", required=True, max_length=100),
        FieldSpec("title", "title", max_length=300),
        FieldSpec("module", "module", max_length=100),
        FieldSpec("description", "description", TEXT),
        FieldSpec("preconditions", "preconditions", TEXT),
        FieldSpec("testSteps", "test_steps", TEXT),
        FieldSpec("expectedResult", "expected_result", TEXT),
        FieldSpec("actualResult", "actual_result", TEXT),
        FieldSpec("inputData", "input_data", JSON),
        FieldSpec("remarks", "remarks", TEXT),
        FieldSpec("severity", "severity", ENUM, choices=TEST_CASE_SEVERITIES),
        FieldSpec("complexity", "complexity", ENUM, choices=TEST_CASE_COMPLEXITIES),
        FieldSpec("status", "status", ENUM, choices=TEST_CASE_STATUSES),
        FieldSpec("executionDate", "execution_date", DATE),
    ),
    user_refs=(
        UserRef("assignedTo", "assigned_to_id"),
        UserRef("createdBy", "created_by_id"),
    ),
)

DEFECT_SPEC = ImportSpec(
    kind="defect",
    entity_type="defect",
    model=Defect,
    file_model=DefectFile,
    code_attr="defect_id_code",
    file_attr="defect_file_id",
    file_label="Defect file",
    file_id_column="defectFileId",
    file_name_column="defectFileName",
    fields=(
        FieldSpec("defectIdCode", "defect_id_code", required=True, max_length=100),
        FieldSpec("title", "title", required=True, max_length=300),
        FieldSpec("module", "module", max_length=100),
        FieldSpec("description", "description", TEXT),
        FieldSpec("testData", "test_data", JSON),
        FieldSpec("actualResults", "actual_results", TEXT),
        FieldSpec("expectedResults", "expected_results", TEXT),
        FieldSpec("severity", "severity", ENUM, choices=DEFECT_SEVERITIES),
        FieldSpec("priority", "priority", ENUM, choices=DEFECT_PRIORITIES),
        FieldSpec("status", "status", ENUM, choices=DEFECT_STATUSES),
        FieldSpec("release", "release", max_length=100),
        FieldSpec("environment", "environment", max_length=100),
        FieldSpec("rcaStatus", "rca_status", max_length=100),
        FieldSpec("comments", "comments", TEXT),
        FieldSpec("triageComments", "triage_comments", TEXT),
        FieldSpec("labels", "labels", max_length=300),
        FieldSpec("deliveryDate", "delivery_date", DATE),
        FieldSpec("reportedDate", "reported_date", DATE),
        FieldSpec("closedDate", "closed_date", DATE),
    ),
    user_refs=(
        UserRef("assignedTo", "assigned_to_id"),
        UserRef("reportedBy", "reported_by_id"),
    ),
)

IMPORT_SPECS = {
    TEST_CASE_SPEC.kind: TEST_CASE_SPEC,
    DEFECT_SPEC.kind: DEFECT_SPEC,
}


def get_import_spec(kind: str) -> ImportSpec:
    try:
        return IMPORT_SPECS[kind]
    except KeyError:
        raise ValueError(f"Unknown import kind '{kind}'") from None
