"""
Bulk import unit tests — normalizer, reference index and resolver.

No database: the ReferenceIndex is built from plain namespaces.

Covers:
  - date coercion (serial numbers, numeric strings, ISO strings, cells)
  - JSON / enum / text coercion and blank handling
  - project precedence (id > code > name), parent-file ownership checks
  - user resolution by id then email, unresolved users left unlinked
  - enum canonicalisation and length validation
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace as NS

import pytest

from qaportal.services.bulk_import import (
    DEFECT_SPEC,
    TEST_CASE_SPEC,
    NormalizedRow,
    ReferenceIndex,
    RowFailure,
    normalize_row,
    resolve_row,
)
from qaportal.services.bulk_import.normalizer import (
    cell_text,
    normalize_enum,
    parse_date_value,
    parse_json_value,
)
from qaportal.services.bulk_import.resolver import parse_id
from qaportal.services.bulk_import.specs import get_import_spec


@pytest.fixture()
def index():
    projects = [
        NS(id=1, code="ALPHA", name="Alpha Project"),
        NS(id=2, code="1", name="Numeric Code"),
        NS(id=3, code="GAMMA", name="Gamma"),
    ]
    files = [
        NS(id=10, name="Regression", project_id=1),
        NS(id=11, name="Smoke", project_id=3),
    ]
    users = [
        NS(id=100, email="qa@test.io"),
        NS(id=101, email="Dev@Test.io"),
    ]
    return ReferenceIndex.build(projects, files, users)


def _normalized(values, row=2, spec=TEST_CASE_SPEC):
    base = {c: None for c in spec.columns}
    base.update(values)
    return NormalizedRow(row=row, values=base)


# ═══════════════════════════════════════════════════════════════
# Normalizer
# ═══════════════════════════════════════════════════════════════

class TestParseDate:
    def test_serial_number(self):
        assert parse_date_value(44197) == datetime(2021, 1, 1, tzinfo=timezone.utc)
        assert parse_date_value(44197).isoformat() == "2021-01-01T00:00:00+00:00"

    def test_fractional_serial(self):
        assert parse_date_value(44197.5) == datetime(2021, 1, 1, 12, tzinfo=timezone.utc)

    def test_numeric_string_is_serial(self):
        assert parse_date_value("44197") == datetime(2021, 1, 1, tzinfo=timezone.utc)

    def test_eight_digit_string_is_iso_basic_date(self):
        assert parse_date_value("20210101") == datetime(2021, 1, 1, tzinfo=timezone.utc)

    def test_iso_string(self):
        assert parse_date_value("2024-02-29") == datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert parse_date_value("2024-02-29T08:30:00Z") == datetime(2024, 2, 29, 8, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        assert parse_date_value("2024-01-01T02:00:00+02:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_cells(self):
        assert parse_date_value(datetime(2023, 5, 6, 7, 8)) == datetime(2023, 5, 6, 7, 8, tzinfo=timezone.utc)
        assert parse_date_value(date(2023, 5, 6)) == datetime(2023, 5, 6, tzinfo=timezone.utc)

    def test_blank(self):
        assert parse_date_value(None) is None
        assert parse_date_value("   ") is None

    @pytest.mark.parametrize("value", ["tomorrow", "2024-13-45", "99999999", True])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_date_value(value)


def test_cell_text():
    assert cell_text("  hi ") == "hi"
    assert cell_text("   ") is None
    assert cell_text(12.0) == "12"
    assert cell_text(1.5) == "1.5"
    assert cell_text(None) is None


def test_parse_json_value():
    assert parse_json_value('{"a": 1}') == {"a": 1}
    assert parse_json_value("[1, 2]") == [1, 2]
    assert parse_json_value("not json") == "not json"
    assert parse_json_value(7) == 7
    assert parse_json_value("") is None


def test_normalize_enum():
    assert normalize_enum("hIGH") == "High"
    assert normalize_enum(" in_progress ") == "In_progress"
    assert normalize_enum("") is None


class TestNormalizeRow:
    def test_required_fields_only(self):
        result = normalize_row({"projectCode": "ALPHA", "testCaseIdCode": "TC-1"}, TEST_CASE_SPEC, row=2)
        assert isinstance(result, NormalizedRow)
        assert result.row == 2
        assert result.get("testCaseIdCode") == "TC-1"
        for column in ("title", "description", "inputData", "severity", "executionDate"):
            assert result.get(column) is None

    def test_blank_strings_become_none(self):
        result = normalize_row({"testCaseIdCode": "TC-1", "title": "  ", "module": ""}, TEST_CASE_SPEC)
        assert result.get("title") is None
        assert result.get("module") is None

    def test_missing_required_and_bad_date_are_collected(self):
        errors = normalize_row({"title": "x", "reportedDate": "someday"}, DEFECT_SPEC, row=5)
        assert errors == ["defectIdCode is required", "Invalid date 'someday'"]

    def test_defect_title_required(self):
        errors = normalize_row({"defectIdCode": "D-1"}, DEFECT_SPEC)
        assert errors == ["title is required"]

    def test_reference_columns_are_trimmed_text(self):
        result = normalize_row({"testCaseIdCode": "TC-1", "projectId": 3.0, "assignedToEmail": " qa@test.io "},
                               TEST_CASE_SPEC)
        assert result.get("projectId") == "3"
        assert result.get("assignedToEmail") == "qa@test.io"


def test_get_import_spec_unknown_kind():
    assert get_import_spec("defect") is DEFECT_SPEC
    with pytest.raises(ValueError):
        get_import_spec("requirement")


def test_parse_id():
    assert parse_id("12") == 12
    assert parse_id(" 7 ") == 7
    assert parse_id("0") is None
    assert parse_id("-3") is None
    assert parse_id("abc") is None
    assert parse_id(None) is None


# ═══════════════════════════════════════════════════════════════
# Reference index
# ═══════════════════════════════════════════════════════════════

def test_index_lookups_are_case_insensitive(index):
    assert index.project_by_code("alpha").id == 1
    assert index.project_by_name("GAMMA").id == 3
    assert index.parent_file_by_project_and_name(1, "regression").id == 10
    assert index.user_by_email("dev@test.io").id == 101


def test_index_is_read_only(index):
    with pytest.raises(AttributeError):
        index._projects_by_id = {}
    with pytest.raises(TypeError):
        index._projects_by_id[99] = None


# ═══════════════════════════════════════════════════════════════
# Resolver
# ═══════════════════════════════════════════════════════════════

class TestResolveProject:
    def test_numeric_id_wins_over_code(self, index):
        # "1" is project 1's id and project 2's code
        payload = resolve_row(_normalized({"projectId": "1", "testCaseIdCode": "TC-1"}), index, TEST_CASE_SPEC)
        assert payload.project_id == 1

    def test_numeric_value_in_code_column_still_tries_id_first(self, index):
        payload = resolve_row(_normalized({"projectCode": "1", "testCaseIdCode": "TC-1"}), index, TEST_CASE_SPEC)
        assert payload.project_id == 1

    def test_code(self, index):
        payload = resolve_row(_normalized({"projectCode": "GAMMA", "testCaseIdCode": "TC-1"}), index, TEST_CASE_SPEC)
        assert payload.project_id == 3

    def test_name(self, index):
        payload = resolve_row(_normalized({"projectName": "alpha project", "testCaseIdCode": "TC-1"}),
                              index, TEST_CASE_SPEC)
        assert payload.project_id == 1

    def test_later_column_used_when_earlier_invalid(self, index):
        payload = resolve_row(_normalized({"projectId": "77", "projectCode": "GAMMA", "testCaseIdCode": "TC-1"}),
                              index, TEST_CASE_SPEC)
        assert payload.project_id == 3

    def test_missing(self, index):
        result = resolve_row(_normalized({"testCaseIdCode": "TC-1"}, row=4), index, TEST_CASE_SPEC)
        assert isinstance(result, RowFailure)
        assert result.row == 4
        assert "Project reference is required" in result.errors[0]

    def test_invalid(self, index):
        result = resolve_row(_normalized({"projectCode": "NOPE", "testCaseIdCode": "TC-1"}), index, TEST_CASE_SPEC)
        assert result.errors == ["Invalid project reference 'NOPE'"]


class TestResolveParentFile:
    def test_by_id(self, index):
        payload = resolve_row(_normalized({"projectId": "1", "testCaseFileId": "10", "testCaseIdCode": "TC-1"}),
                              index, TEST_CASE_SPEC)
        assert payload.fields["test_case_file_id"] == 10

    def test_by_name_within_project(self, index):
        payload = resolve_row(
            _normalized({"projectId": "1", "testCaseFileName": "REGRESSION", "testCaseIdCode": "TC-1"}),
            index, TEST_CASE_SPEC,
        )
        assert payload.fields["test_case_file_id"] == 10

    def test_id_of_other_project_is_rejected(self, index):
        result = resolve_row(_normalized({"projectId": "1", "testCaseFileId": "11", "testCaseIdCode": "TC-1"}),
                             index, TEST_CASE_SPEC)
        assert isinstance(result, RowFailure)
        assert result.errors == ["Test case file 11 belongs to project GAMMA, not ALPHA"]

    def test_unknown_id(self, index):
        result = resolve_row(_normalized({"projectId": "1", "testCaseFileId": "99", "testCaseIdCode": "TC-1"}),
                             index, TEST_CASE_SPEC)
        assert result.errors == ["Test case file 99 not found"]

    def test_non_numeric_id(self, index):
        result = resolve_row(_normalized({"projectId": "1", "testCaseFileId": "abc", "testCaseIdCode": "TC-1"}),
                             index, TEST_CASE_SPEC)
        assert result.errors == ["Invalid testCaseFileId 'abc'"]

    def test_name_in_other_project_is_not_found(self, index):
        result = resolve_row(_normalized({"projectId": "1", "testCaseFileName": "Smoke", "testCaseIdCode": "TC-1"}),
                             index, TEST_CASE_SPEC)
        assert result.errors == ["Test case file 'Smoke' not found in project ALPHA"]

    def test_none_given(self, index):
        payload = resolve_row(_normalized({"projectId": "1", "testCaseIdCode": "TC-1"}), index, TEST_CASE_SPEC)
        assert payload.fields["test_case_file_id"] is None


class TestResolveUsers:
    def test_id_then_email(self, index):
        payload = resolve_row(_normalized({
            "projectId": "1", "defectIdCode": "D-1", "title": "x",
            "assignedToId": "100", "reportedByEmail": "DEV@test.io",
        }, spec=DEFECT_SPEC), index, DEFECT_SPEC)
        assert payload.fields["assigned_to_id"] == 100
        assert payload.fields["reported_by_id"] == 101

    def test_unknown_id_falls_back_to_email(self, index):
        payload = resolve_row(_normalized({
            "projectId": "1", "testCaseIdCode": "TC-1",
            "assignedToId": "555", "assignedToEmail": "qa@test.io",
        }), index, TEST_CASE_SPEC)
        assert payload.fields["assigned_to_id"] == 100

    def test_unresolved_user_is_left_unlinked(self, index):
        payload = resolve_row(_normalized({
            "projectId": "1", "testCaseIdCode": "TC-1", "createdByEmail": "ghost@test.io",
        }), index, TEST_CASE_SPEC)
        assert not isinstance(payload, RowFailure)
        assert payload.fields["created_by_id"] is None


class TestValidation:
    def test_enum_canonicalised(self, index):
        payload = resolve_row(_normalized({
            "projectId": "1", "testCaseIdCode": "TC-1", "status": "Cannot_be_executed", "severity": "Low",
        }), index, TEST_CASE_SPEC)
        assert payload.fields["status"] == "Cannot_be_Executed"
        assert payload.fields["severity"] == "Low"

    def test_enum_rejected(self, index):
        result = resolve_row(_normalized({
            "projectId": "1", "defectIdCode": "D-1", "title": "x", "severity": "Critical",
        }, spec=DEFECT_SPEC), index, DEFECT_SPEC)
        assert result.errors == ["Invalid severity 'Critical'. Allowed: Highest, High, Medium, Low"]

    def test_too_long(self, index):
        result = resolve_row(_normalized({
            "projectId": "1", "testCaseIdCode": "TC-1", "module": "m" * 101,
        }), index, TEST_CASE_SPEC)
        assert result.errors == ["module must be at most 100 characters"]

    def test_optional_fields_absent(self, index):
        payload = resolve_row(_normalized({"projectId": "1", "testCaseIdCode": "TC-1"}), index, TEST_CASE_SPEC)
        assert payload.code == "TC-1"
        assert set(payload.fields) == set(TEST_CASE_SPEC.assignable_attrs)
        assert all(value is None for value in payload.fields.values())
