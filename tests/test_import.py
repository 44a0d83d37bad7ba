"""
Bulk import integration tests — orchestrator and the /import/xlsx endpoints.

Covers:
  - natural-key upsert idempotence (create, then update the same id)
  - row isolation and header-offset row numbers
  - reference precedence and cross-project parent-file rejection
  - date serial 44197 → 2021-01-01T00:00:00+00:00
  - blank optional columns stored as NULL
  - parse errors, CSV input, persistence failures, aborted runs (503)
  - export → import round trip
"""

import io
from types import SimpleNamespace as NS

import pytest
from openpyxl import Workbook
from sqlalchemy.exc import OperationalError

from qaportal.models import db
from qaportal.models.audit import AuditLog
from qaportal.models.project import Project
from qaportal.models.testing import Defect, DefectFile, TestCase, TestCaseFile
from qaportal.services.bulk_import import executor, orchestrator, reference_index, run_import


def _xlsx(header, *rows):
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture()
def projects():
    alpha = Project(code="ALPHA", name="Alpha")
    beta = Project(code="BETA", name="Beta")
    db.session.add_all([alpha, beta])
    db.session.commit()
    return alpha, beta


# ═══════════════════════════════════════════════════════════════
# Orchestrator
# ═══════════════════════════════════════════════════════════════

class TestRunImport:
    def test_same_row_twice_creates_then_updates(self, projects):
        data = _xlsx(["projectCode", "testCaseIdCode", "title"], ["ALPHA", "TC-1", "Login"])

        first = run_import(data, "test_case")
        second = run_import(data, "test_case")

        assert [c.mode for c in first.created] == ["created"]
        assert [c.mode for c in second.created] == ["updated"]
        assert first.created[0].id == second.created[0].id
        assert TestCase.query.count() == 1

    def test_update_overwrites_with_blanks(self, projects):
        run_import(_xlsx(["projectCode", "testCaseIdCode", "title", "module"],
                         ["ALPHA", "TC-1", "Login", "Auth"]), "test_case")
        run_import(_xlsx(["projectCode", "testCaseIdCode", "title", "module"],
                         ["ALPHA", "TC-1", "Login v2", None]), "test_case")
        case = TestCase.query.one()
        assert case.title == "Login v2"
        assert case.module is None

    def test_row_isolation_and_row_numbers(self, projects):
        data = _xlsx(
            ["projectCode", "defectIdCode", "title"],
            ["ALPHA", "D-1", "One"],
            ["ALPHA", "D-2", "Two"],
            ["NOPE", "D-3", "Three"],
            ["BETA", "D-4", "Four"],
        )
        summary = run_import(data, "defect")

        assert [c.row for c in summary.created] == [2, 3, 5]
        assert len(summary.failed) == 1
        assert summary.failed[0].row == 4
        assert summary.failed[0].errors == ["Invalid project reference 'NOPE'"]
        assert Defect.query.count() == 3

    def test_numeric_id_beats_matching_code(self, projects):
        alpha, _ = projects
        decoy = Project(code=str(alpha.id), name="Decoy")
        db.session.add(decoy)
        db.session.commit()

        summary = run_import(_xlsx(["projectId", "testCaseIdCode"], [alpha.id, "TC-1"]), "test_case")
        assert summary.failed == []
        assert TestCase.query.one().project_id == alpha.id

    def test_parent_file_of_other_project_fails(self, projects):
        alpha, beta = projects
        parent = DefectFile(project_id=beta.id, name="Beta triage")
        db.session.add(parent)
        db.session.commit()

        summary = run_import(_xlsx(
            ["projectCode", "defectFileId", "defectIdCode", "title"],
            ["ALPHA", parent.id, "D-1", "Wrong file"],
        ), "defect")

        assert summary.created == []
        assert summary.failed[0].errors == [f"Defect file {parent.id} belongs to project BETA, not ALPHA"]
        assert Defect.query.count() == 0

    def test_parent_file_by_name(self, projects):
        alpha, _ = projects
        parent = TestCaseFile(project_id=alpha.id, name="Regression")
        db.session.add(parent)
        db.session.commit()

        run_import(_xlsx(["projectCode", "testCaseFileName", "testCaseIdCode"],
                         ["ALPHA", "regression", "TC-1"]), "test_case")
        assert TestCase.query.one().test_case_file_id == parent.id

    def test_soft_deleted_parent_file_is_not_resolvable(self, projects):
        alpha, _ = projects
        parent = TestCaseFile(project_id=alpha.id, name="Gone", is_deleted=True)
        db.session.add(parent)
        db.session.commit()

        summary = run_import(_xlsx(["projectCode", "testCaseFileId", "testCaseIdCode"],
                                   ["ALPHA", parent.id, "TC-1"]), "test_case")
        assert summary.failed[0].errors == [f"Test case file {parent.id} not found"]

    def test_date_serial(self, projects):
        run_import(_xlsx(["projectCode", "testCaseIdCode", "executionDate"], ["ALPHA", "TC-1", 44197]), "test_case")
        assert TestCase.query.one().to_dict()["executionDate"] == "2021-01-01T00:00:00+00:00"

    def test_required_only_row_stores_nulls(self, projects):
        summary = run_import(_xlsx(
            ["projectCode", "defectIdCode", "title", "module", "description", "testData",
             "severity", "priority", "status", "closedDate", "assignedToEmail"],
            ["ALPHA", "D-1", "Only required", "", None, " ", None, "", None, "", ""],
        ), "defect")

        assert summary.failed == []
        defect = Defect.query.one()
        for attr in ("module", "description", "test_data", "severity", "priority", "status",
                     "closed_date", "assigned_to_id", "defect_file_id", "reported_by_id"):
            assert getattr(defect, attr) is None, attr

    def test_users_resolved_and_enums_canonicalised(self, projects, qa_user):
        run_import(_xlsx(
            ["projectCode", "defectIdCode", "title", "severity", "status", "assignedToEmail", "reportedById"],
            ["ALPHA", "D-1", "Crash", "HIGHEST", "in_progress", "QA@test.io", qa_user.id],
        ), "defect")
        defect = Defect.query.one()
        assert defect.severity == "Highest"
        assert defect.status == "In_Progress"
        assert defect.assigned_to_id == qa_user.id
        assert defect.reported_by_id == qa_user.id

    def test_import_writes_audit_rows(self, projects, admin_user):
        data = _xlsx(["projectCode", "testCaseIdCode"], ["ALPHA", "TC-1"])
        run_import(data, "test_case", actor_user_id=admin_user.id)
        run_import(data, "test_case", actor_user_id=admin_user.id)

        actions = [a.action for a in AuditLog.query.filter_by(entity_type="test_case").order_by(AuditLog.id)]
        assert actions == ["import.create", "import.update"]
        assert AuditLog.query.filter_by(action="import.create").one().user_id == admin_user.id

    def test_csv_input(self, projects):
        data = "projectCode,testCaseIdCode,title\nALPHA,TC-1,From CSV\n,,\nALPHA,TC-2,Second\n".encode()
        summary = run_import(data, "test_case", filename="cases.csv")
        assert [c.row for c in summary.created] == [2, 3]
        assert TestCase.query.count() == 2

    def test_unreadable_file_reports_parse_error(self, projects):
        summary = run_import(b"PK\x03\x04 not really a zip", "test_case", filename="broken.xlsx")
        assert summary.created == [] and summary.failed == []
        assert summary.parse_errors[0].startswith("Unable to read workbook")

    def test_empty_file(self):
        summary = run_import(b"", "defect")
        assert summary.to_dict() == {
            "summary": {"created": 0, "failed": 0},
            "created": [],
            "failed": [],
            "parseErrors": ["File is empty"],
        }

    def test_database_error_fails_only_that_row(self, projects, monkeypatch):
        real_write_audit = executor.write_audit

        def flaky_write_audit(**kwargs):
            if kwargs["after"]["testCaseIdCode"] == "TC-2":
                raise OperationalError("INSERT", {}, Exception("disk full"))
            return real_write_audit(**kwargs)

        monkeypatch.setattr(executor, "write_audit", flaky_write_audit)
        summary = run_import(_xlsx(
            ["projectCode", "testCaseIdCode"],
            ["ALPHA", "TC-1"], ["ALPHA", "TC-2"], ["ALPHA", "TC-3"],
        ), "test_case")

        assert [c.row for c in summary.created] == [2, 4]
        assert summary.failed[0].row == 3
        assert "disk full" in summary.failed[0].errors[0]
        assert {c.test_case_id_code for c in TestCase.query.all()} == {"TC-1", "TC-3"}

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            run_import(b"a,b\n1,2\n", "requirement")


# ═══════════════════════════════════════════════════════════════
# HTTP endpoints
# ═══════════════════════════════════════════════════════════════

def _post_file(client, url, data, name="import.xlsx"):
    return client.post(url, data={"file": (io.BytesIO(data), name)}, content_type="multipart/form-data")


def test_import_endpoint_summary(client, projects):
    res = _post_file(client, "/api/v1/defects/import/xlsx", _xlsx(
        ["projectCode", "defectIdCode", "title", "severity"],
        ["ALPHA", "D-1", "Ok", "Low"],
        ["ALPHA", "D-2", "Bad", "Critical"],
    ))
    assert res.status_code == 200
    body = res.get_json()["data"]
    assert body["summary"] == {"created": 1, "failed": 1}
    assert body["created"][0]["row"] == 2
    assert body["created"][0]["mode"] == "created"
    assert body["failed"] == [{"row": 3, "errors": ["Invalid severity 'Critical'. Allowed: Highest, High, Medium, Low"]}]
    assert body["parseErrors"] == []


def test_import_endpoint_requires_file(client):
    res = client.post("/api/v1/test-cases/import/xlsx", data={}, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "FILE_REQUIRED"


def test_import_endpoint_aborts_when_references_unavailable(client, projects, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database unavailable"))

    monkeypatch.setattr(reference_index, "Project", NS(query=NS(with_entities=boom), id=None, code=None, name=None))
    res = _post_file(client, "/api/v1/test-cases/import/xlsx",
                     _xlsx(["projectCode", "testCaseIdCode"], ["ALPHA", "TC-1"]))
    assert res.status_code == 503
    assert res.get_json()["error"]["code"] == "IMPORT_ABORTED"
    assert TestCase.query.count() == 0


def test_no_index_built_for_header_only_file(client, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("index should not be built")

    monkeypatch.setattr(orchestrator, "load_reference_index", fail)
    res = _post_file(client, "/api/v1/test-cases/import/xlsx", _xlsx(["projectCode", "testCaseIdCode"]))
    assert res.status_code == 200
    assert res.get_json()["data"]["summary"] == {"created": 0, "failed": 0}


def test_export_then_import_round_trip(client, projects):
    _post_file(client, "/api/v1/test-cases/import/xlsx", _xlsx(
        ["projectCode", "testCaseIdCode", "title", "inputData", "executionDate", "status"],
        ["ALPHA", "TC-1", "Login", '{"user": "qa"}', "2024-05-01", "Pass"],
        ["BETA", "TC-1", "Other project", None, None, "Fail"],
    ))
    exported = client.get("/api/v1/test-cases/export/xlsx").data

    res = _post_file(client, "/api/v1/test-cases/import/xlsx", exported)
    body = res.get_json()["data"]
    assert body["summary"] == {"created": 2, "failed": 0}
    assert {c["mode"] for c in body["created"]} == {"updated"}

    alpha_case = TestCase.query.filter_by(project_id=projects[0].id).one()
    assert alpha_case.input_data == {"user": "qa"}
    assert alpha_case.to_dict()["executionDate"] == "2024-05-01T00:00:00+00:00"
