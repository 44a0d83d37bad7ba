"""
Test case & defect API tests.

Covers:
  - CRUD for /test-cases and /defects (shared record routes)
  - Enum canonicalisation, required fields, per-project code uniqueness
  - List filters: projectId, file id, status, search
  - Author defaulting to the JWT user
  - Artifact upload / list / delete and the /uploads file route
  - Spreadsheet export and template downloads
"""

import io

import pytest
from openpyxl import load_workbook

from qaportal.models.audit import AuditLog
from qaportal.models.testing import TestCaseArtifact


def _create_case(client, project, **overrides):
    body = {"projectId": project["id"], "testCaseIdCode": "TC-1", "title": "Login works"}
    body.update(overrides)
    return client.post("/api/v1/test-cases", json=body)


def _create_defect(client, project, **overrides):
    body = {"projectId": project["id"], "defectIdCode": "DEF-1", "title": "Button misaligned"}
    body.update(overrides)
    return client.post("/api/v1/defects", json=body)


# ═══════════════════════════════════════════════════════════════
# Test cases
# ═══════════════════════════════════════════════════════════════

class TestTestCaseCrud:
    def test_create(self, client, project):
        res = _create_case(client, project, severity="high", status="on_hold",
                           inputData={"user": "qa"}, executionDate="2024-03-01T10:00:00Z")
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["testCaseIdCode"] == "TC-1"
        assert data["severity"] == "High"
        assert data["status"] == "On_Hold"
        assert data["inputData"] == {"user": "qa"}
        assert data["executionDate"] == "2024-03-01T10:00:00+00:00"
        assert data["projectCode"] == "PRJ1"
        assert data["artifactCount"] == 0

    def test_create_requires_code(self, client, project):
        res = client.post("/api/v1/test-cases", json={"projectId": project["id"]})
        assert res.status_code == 400
        assert res.get_json()["error"]["details"] == {"testCaseIdCode": "required"}

    def test_create_rejects_bad_enum(self, client, project):
        res = _create_case(client, project, severity="Critical")
        assert res.status_code == 400
        assert "Allowed: High, Medium, Low" in res.get_json()["error"]["message"]

    def test_create_rejects_bad_date(self, client, project):
        res = _create_case(client, project, executionDate="yesterday")
        assert res.status_code == 400

    def test_duplicate_code_in_same_project(self, client, project):
        assert _create_case(client, project).status_code == 201
        res = _create_case(client, project)
        assert res.status_code == 409

    def test_same_code_in_other_project(self, client, project):
        other = client.post("/api/v1/projects", json={"code": "P2", "name": "Two"}).get_json()["data"]
        assert _create_case(client, project).status_code == 201
        assert _create_case(client, other).status_code == 201

    def test_author_defaults_to_jwt_user(self, client, project, admin_user, auth_headers):
        res = client.post("/api/v1/test-cases", headers=auth_headers, json={
            "projectId": project["id"], "testCaseIdCode": "TC-9"})
        data = res.get_json()["data"]
        assert data["createdById"] == admin_user.id
        assert data["createdByName"] == "Ada Admin"

    def test_unknown_assignee_rejected(self, client, project):
        res = _create_case(client, project, assignedToId=999)
        assert res.status_code == 400

    def test_file_from_other_project_rejected(self, client, project):
        other = client.post("/api/v1/projects", json={"code": "P2", "name": "Two"}).get_json()["data"]
        parent = client.post("/api/v1/test-case-files", json={
            "projectId": other["id"], "name": "Theirs"}).get_json()["data"]
        res = _create_case(client, project, testCaseFileId=parent["id"])
        assert res.status_code == 400

    def test_update_is_partial(self, client, project):
        created = _create_case(client, project, module="Auth").get_json()["data"]
        res = client.put(f"/api/v1/test-cases/{created['id']}", json={"status": "Pass"})
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["status"] == "Pass"
        assert data["module"] == "Auth"
        assert data["title"] == "Login works"

    def test_update_code_conflict(self, client, project):
        _create_case(client, project, testCaseIdCode="TC-A")
        second = _create_case(client, project, testCaseIdCode="TC-B").get_json()["data"]
        res = client.put(f"/api/v1/test-cases/{second['id']}", json={"testCaseIdCode": "TC-A"})
        assert res.status_code == 409

    def test_delete(self, client, project):
        created = _create_case(client, project).get_json()["data"]
        res = client.delete(f"/api/v1/test-cases/{created['id']}")
        assert res.status_code == 200
        assert client.get(f"/api/v1/test-cases/{created['id']}").status_code == 404
        actions = [a.action for a in AuditLog.query.filter_by(entity_type="test_case").all()]
        assert sorted(actions) == ["create", "delete"]

    def test_get_missing(self, client):
        res = client.get("/api/v1/test-cases/12345")
        assert res.status_code == 404
        assert res.get_json()["error"]["message"] == "Test case not found"


class TestTestCaseList:
    @pytest.fixture()
    def seeded(self, client, project):
        parent = client.post("/api/v1/test-case-files", json={
            "projectId": project["id"], "name": "Regression"}).get_json()["data"]
        _create_case(client, project, testCaseIdCode="TC-1", title="Login works", status="Pass",
                     testCaseFileId=parent["id"])
        _create_case(client, project, testCaseIdCode="TC-2", title="Logout works", status="Fail")
        _create_case(client, project, testCaseIdCode="TC-3", title="Search", description="find login",
                     status="Pass")
        return parent

    def test_all(self, client, seeded):
        body = client.get("/api/v1/test-cases").get_json()
        assert body["pagination"]["total"] == 3

    def test_filter_status_case_insensitive(self, client, seeded):
        data = client.get("/api/v1/test-cases?status=pass").get_json()["data"]
        assert {d["testCaseIdCode"] for d in data} == {"TC-1", "TC-3"}

    def test_filter_by_file(self, client, seeded):
        data = client.get(f"/api/v1/test-cases?testCaseFileId={seeded['id']}").get_json()["data"]
        assert [d["testCaseIdCode"] for d in data] == ["TC-1"]
        assert data[0]["testCaseFileName"] == "Regression"

    def test_search_matches_code_title_description(self, client, seeded):
        data = client.get("/api/v1/test-cases?search=login").get_json()["data"]
        assert {d["testCaseIdCode"] for d in data} == {"TC-1", "TC-3"}


# ═══════════════════════════════════════════════════════════════
# Defects
# ═══════════════════════════════════════════════════════════════

class TestDefectCrud:
    def test_create(self, client, project):
        res = _create_defect(client, project, severity="highest", priority="LOW",
                             status="in_progress", testData="plain text",
                             reportedDate="2024-01-01", closedDate="2024-01-03")
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["severity"] == "Highest"
        assert data["priority"] == "Low"
        assert data["status"] == "In_Progress"
        assert data["testData"] == "plain text"
        assert data["reportedDate"] == "2024-01-01T00:00:00+00:00"

    def test_title_required(self, client, project):
        res = client.post("/api/v1/defects", json={"projectId": project["id"], "defectIdCode": "D-1"})
        assert res.status_code == 400
        assert res.get_json()["error"]["details"] == {"title": "required"}

    def test_reporter_defaults_to_jwt_user(self, client, project, admin_user, auth_headers):
        res = client.post("/api/v1/defects", headers=auth_headers, json={
            "projectId": project["id"], "defectIdCode": "D-2", "title": "Crash"})
        assert res.get_json()["data"]["reportedById"] == admin_user.id

    def test_update_and_filter(self, client, project):
        created = _create_defect(client, project).get_json()["data"]
        client.put(f"/api/v1/defects/{created['id']}", json={"status": "Closed"})
        data = client.get("/api/v1/defects?status=closed").get_json()["data"]
        assert [d["id"] for d in data] == [created["id"]]

    def test_delete(self, client, project):
        created = _create_defect(client, project).get_json()["data"]
        assert client.delete(f"/api/v1/defects/{created['id']}").status_code == 200
        assert client.get("/api/v1/defects").get_json()["data"] == []


# ═══════════════════════════════════════════════════════════════
# Artifacts
# ═══════════════════════════════════════════════════════════════

class TestArtifacts:
    @pytest.fixture()
    def case(self, client, project):
        return _create_case(client, project).get_json()["data"]

    def _upload(self, client, url, content=b"\x89PNG fake", name="shot.png", mimetype="image/png"):
        return client.post(
            url,
            data={"file": (io.BytesIO(content), name, mimetype)},
            content_type="multipart/form-data",
        )

    def test_upload_list_and_serve(self, client, case, upload_dir):
        url = f"/api/v1/test-cases/{case['id']}/artifacts"
        res = self._upload(client, url)
        assert res.status_code == 201
        artifact = res.get_json()["data"]
        assert artifact["type"] == "image"
        assert artifact["originalName"] == "shot.png"
        assert artifact["sizeBytes"] == len(b"\x89PNG fake")
        assert artifact["filePath"].startswith(f"test-cases/{case['id']}/")
        assert artifact["filePath"].endswith(".png")
        assert (upload_dir / artifact["filePath"]).exists()

        listed = client.get(url).get_json()["data"]
        assert [a["id"] for a in listed] == [artifact["id"]]

        served = client.get(f"/uploads/{artifact['filePath']}")
        assert served.status_code == 200
        assert served.data == b"\x89PNG fake"

        assert client.get(f"/api/v1/test-cases/{case['id']}").get_json()["data"]["artifactCount"] == 1

    def test_video_upload_on_defect(self, client, project, upload_dir):
        defect = _create_defect(client, project).get_json()["data"]
        res = self._upload(client, f"/api/v1/defects/{defect['id']}/artifacts",
                           content=b"0000", name="repro.mp4", mimetype="video/mp4")
        assert res.status_code == 201
        assert res.get_json()["data"]["type"] == "video"
        assert res.get_json()["data"]["defectId"] == defect["id"]

    def test_disallowed_type(self, client, case, upload_dir):
        res = self._upload(client, f"/api/v1/test-cases/{case['id']}/artifacts",
                           name="notes.txt", mimetype="text/plain")
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "FILE_TYPE_NOT_ALLOWED"
        assert list(upload_dir.iterdir()) == []

    def test_missing_file(self, client, case, upload_dir):
        res = client.post(f"/api/v1/test-cases/{case['id']}/artifacts", data={},
                          content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["error"]["code"] == "FILE_REQUIRED"

    def test_too_large(self, app, client, case, upload_dir, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_FILE_SIZE_MB", 0)
        res = self._upload(client, f"/api/v1/test-cases/{case['id']}/artifacts")
        assert res.status_code == 413
        assert res.get_json()["error"]["code"] == "FILE_TOO_LARGE"
        assert not any(p.is_file() for p in upload_dir.rglob("*"))

    def test_delete_artifact_removes_file(self, client, case, upload_dir):
        url = f"/api/v1/test-cases/{case['id']}/artifacts"
        artifact = self._upload(client, url).get_json()["data"]
        res = client.delete(f"{url}/{artifact['id']}")
        assert res.status_code == 200
        assert not (upload_dir / artifact["filePath"]).exists()
        assert TestCaseArtifact.query.count() == 0

    def test_delete_artifact_wrong_record(self, client, project, case, upload_dir):
        artifact = self._upload(client, f"/api/v1/test-cases/{case['id']}/artifacts").get_json()["data"]
        other = _create_case(client, project, testCaseIdCode="TC-2").get_json()["data"]
        res = client.delete(f"/api/v1/test-cases/{other['id']}/artifacts/{artifact['id']}")
        assert res.status_code == 404

    def test_deleting_record_removes_artifact_files(self, client, case, upload_dir):
        artifact = self._upload(client, f"/api/v1/test-cases/{case['id']}/artifacts").get_json()["data"]
        assert client.delete(f"/api/v1/test-cases/{case['id']}").status_code == 200
        assert not (upload_dir / artifact["filePath"]).exists()
        assert TestCaseArtifact.query.count() == 0


# ═══════════════════════════════════════════════════════════════
# Export / template
# ═══════════════════════════════════════════════════════════════

def _sheet_rows(res):
    ws = load_workbook(io.BytesIO(res.data)).active
    return [list(r) for r in ws.iter_rows(values_only=True)]


def test_export_test_cases(client, project, admin_user):
    _create_case(client, project, assignedToId=admin_user.id, severity="Low")
    res = client.get("/api/v1/test-cases/export/xlsx")
    assert res.status_code == 200
    assert res.mimetype.endswith("spreadsheetml.sheet")
    assert "test-cases.xlsx" in res.headers["Content-Disposition"]

    header, row = _sheet_rows(res)
    record = dict(zip(header, row))
    assert record["projectCode"] == "PRJ1"
    assert record["testCaseIdCode"] == "TC-1"
    assert record["severity"] == "Low"
    assert record["assignedToEmail"] == "admin@test.io"


def test_defect_template_has_header_and_example(client):
    res = client.get("/api/v1/defects/template/xlsx")
    assert res.status_code == 200
    assert "defects-template.xlsx" in res.headers["Content-Disposition"]
    rows = _sheet_rows(res)
    assert rows[0][:3] == ["projectId", "projectCode", "projectName"]
    assert "defectIdCode" in rows[0]
    assert len(rows) == 2
