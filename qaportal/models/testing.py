"""
QA Portal
Testing domain models.

Models:
    - TestCaseFile:      named grouping of test cases within a project (versioned sheet)
    - TestCase:          individual test case, natural key (project_id, test_case_id_code)
    - TestCaseArtifact:  screenshot / recording attached to a test case
    - DefectFile:        named grouping of defects within a project
    - Defect:            defect / bug, natural key (project_id, defect_id_code)
    - DefectArtifact:    screenshot / recording attached to a defect

Architecture ref:
    Project ──1:N──▶ TestCaseFile ──1:N──▶ TestCase ──1:N──▶ TestCaseArtifact
    Project ──1:N──▶ DefectFile   ──1:N──▶ Defect   ──1:N──▶ DefectArtifact
"""

from datetime import datetime, timezone

from qaportal.models import db, iso


# ── Constants ────────────────────────────────────────────────────────────

TEST_CASE_SEVERITIES = ("High", "Medium", "Low")
TEST_CASE_COMPLEXITIES = ("High", "Medium", "Low")
TEST_CASE_STATUSES = (
    "Pass", "Fail", "On_Hold", "Not_Applicable", "Cannot_be_Executed", "Blocked",
)

DEFECT_SEVERITIES = ("Highest", "High", "Medium", "Low")
DEFECT_PRIORITIES = ("Highest", "High", "Medium", "Low")
DEFECT_STATUSES = (
    "Open", "In_Progress", "Resolved", "Reopened", "Rejected", "Closed", "Deferred",
)

ARTIFACT_TYPES = ("image", "video")


def _user_name(user):
    return user.full_name or user.email if user else None


class _ParentFileMixin:
    """Columns shared by TestCaseFile and DefectFile."""

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    version = db.Column(db.String(50), nullable=True)
    environment = db.Column(db.String(100), nullable=True)
    release_build = db.Column(db.String(100), nullable=True)
    refer = db.Column(db.String(200), nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def _file_dict(self, item_key, item_count):
        return {
            "id": self.id,
            "name": self.name,
            "projectId": self.project_id,
            "projectName": self.project.name if self.project else None,
            "projectCode": self.project.code if self.project else None,
            "version": self.version,
            "environment": self.environment,
            "releaseBuild": self.release_build,
            "refer": self.refer,
            "authorId": self.author_id,
            "authorName": _user_name(self.author),
            "isDeleted": self.is_deleted,
            "_count": {item_key: item_count},
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class _ArtifactMixin:
    """Columns shared by test case and defect artifacts."""

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(10), nullable=False, comment="image | video")
    file_path = db.Column(db.String(500), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(100), nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def _artifact_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "filePath": self.file_path,
            "originalName": self.original_name,
            "mimeType": self.mime_type,
            "sizeBytes": self.size_bytes,
            "createdAt": iso(self.created_at),
        }


# ═════════════════════════════════════════════════════════════════════════════
# TEST CASES
# ═════════════════════════════════════════════════════════════════════════════

class TestCaseFile(_ParentFileMixin, db.Model):
    __tablename__ = "test_case_files"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    project = db.relationship("Project")
    author = db.relationship("User")
    test_cases = db.relationship("TestCase", backref="test_case_file", lazy="dynamic")

    def to_dict(self):
        return self._file_dict("testCases", self.test_cases.count())

    def __repr__(self):
        return f"<TestCaseFile {self.id}: {self.name}>"


class TestCase(db.Model):
    """
    Individual test case.

    Unique per project by ``test_case_id_code``; the spreadsheet import
    relies on this to update in place instead of duplicating.
    """

    __tablename__ = "test_cases"
    __table_args__ = (
        db.UniqueConstraint("project_id", "test_case_id_code", name="uq_test_cases_project_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    test_case_file_id = db.Column(
        db.Integer, db.ForeignKey("test_case_files.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    test_case_id_code = db.Column(db.String(100), nullable=False, comment="e.g. TC-001")

    title = db.Column(db.String(300), nullable=True)
    module = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    preconditions = db.Column(db.Text, nullable=True)
    test_steps = db.Column(db.Text, nullable=True)
    expected_result = db.Column(db.Text, nullable=True)
    actual_result = db.Column(db.Text, nullable=True)
    input_data = db.Column(db.JSON, nullable=True, comment="Free-form JSON or scalar test input")
    remarks = db.Column(db.Text, nullable=True)

    severity = db.Column(db.String(20), nullable=True, comment="High | Medium | Low")
    complexity = db.Column(db.String(20), nullable=True, comment="High | Medium | Low")
    status = db.Column(
        db.String(30), nullable=True, index=True,
        comment="Pass | Fail | On_Hold | Not_Applicable | Cannot_be_Executed | Blocked",
    )
    execution_date = db.Column(db.DateTime(timezone=True), nullable=True)

    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project")
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    artifacts = db.relationship(
        "TestCaseArtifact", backref="test_case", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "projectCode": self.project.code if self.project else None,
            "projectName": self.project.name if self.project else None,
            "testCaseFileId": self.test_case_file_id,
            "testCaseFileName": self.test_case_file.name if self.test_case_file else None,
            "testCaseIdCode": self.test_case_id_code,
            "title": self.title,
            "module": self.module,
            "description": self.description,
            "preconditions": self.preconditions,
            "testSteps": self.test_steps,
            "expectedResult": self.expected_result,
            "actualResult": self.actual_result,
            "inputData": self.input_data,
            "remarks": self.remarks,
            "severity": self.severity,
            "complexity": self.complexity,
            "status": self.status,
            "executionDate": iso(self.execution_date),
            "assignedToId": self.assigned_to_id,
            "assignedToName": _user_name(self.assigned_to),
            "createdById": self.created_by_id,
            "createdByName": _user_name(self.created_by),
            "artifactCount": self.artifacts.count(),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<TestCase {self.id}: {self.test_case_id_code}>"


class TestCaseArtifact(_ArtifactMixin, db.Model):
    __tablename__ = "test_case_artifacts"

    test_case_id = db.Column(
        db.Integer, db.ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    def to_dict(self):
        d = self._artifact_dict()
        d["testCaseId"] = self.test_case_id
        return d


# ═════════════════════════════════════════════════════════════════════════════
# DEFECTS
# ═════════════════════════════════════════════════════════════════════════════

class DefectFile(_ParentFileMixin, db.Model):
    __tablename__ = "defect_files"

    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    project = db.relationship("Project")
    author = db.relationship("User")
    defects = db.relationship("Defect", backref="defect_file", lazy="dynamic")

    def to_dict(self):
        return self._file_dict("defects", self.defects.count())

    def __repr__(self):
        return f"<DefectFile {self.id}: {self.name}>"


class Defect(db.Model):
    """
    Defect / bug logged against a project.

    Lifecycle: Open → In_Progress → Resolved → Closed
                                  └──▶ Reopened / Rejected / Deferred
    Unique per project by ``defect_id_code``.
    """

    __tablename__ = "defects"
    __table_args__ = (
        db.UniqueConstraint("project_id", "defect_id_code", name="uq_defects_project_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    defect_file_id = db.Column(
        db.Integer, db.ForeignKey("defect_files.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    defect_id_code = db.Column(db.String(100), nullable=False, comment="e.g. DEF-001")
    title = db.Column(db.String(300), nullable=False)
    module = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    test_data = db.Column(db.JSON, nullable=True, comment="Free-form JSON or scalar test data")
    actual_results = db.Column(db.Text, nullable=True)
    expected_results = db.Column(db.Text, nullable=True)

    severity = db.Column(db.String(20), nullable=True, comment="Highest | High | Medium | Low")
    priority = db.Column(db.String(20), nullable=True, comment="Highest | High | Medium | Low")
    status = db.Column(
        db.String(30), nullable=True, index=True,
        comment="Open | In_Progress | Resolved | Reopened | Rejected | Closed | Deferred",
    )

    release = db.Column(db.String(100), nullable=True)
    environment = db.Column(db.String(100), nullable=True)
    rca_status = db.Column(db.String(100), nullable=True)
    comments = db.Column(db.Text, nullable=True)
    triage_comments = db.Column(db.Text, nullable=True)
    labels = db.Column(db.String(300), nullable=True)

    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reported_date = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reported_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project")
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    reported_by = db.relationship("User", foreign_keys=[reported_by_id])
    artifacts = db.relationship(
        "DefectArtifact", backref="defect", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "projectId": self.project_id,
            "projectCode": self.project.code if self.project else None,
            "projectName": self.project.name if self.project else None,
            "defectFileId": self.defect_file_id,
            "defectFileName": self.defect_file.name if self.defect_file else None,
            "defectIdCode": self.defect_id_code,
            "title": self.title,
            "module": self.module,
            "description": self.description,
            "testData": self.test_data,
            "actualResults": self.actual_results,
            "expectedResults": self.expected_results,
            "severity": self.severity,
            "priority": self.priority,
            "status": self.status,
            "release": self.release,
            "environment": self.environment,
            "rcaStatus": self.rca_status,
            "comments": self.comments,
            "triageComments": self.triage_comments,
            "labels": self.labels,
            "deliveryDate": iso(self.delivery_date),
            "reportedDate": iso(self.reported_date),
            "closedDate": iso(self.closed_date),
            "assignedToId": self.assigned_to_id,
            "assignedToName": _user_name(self.assigned_to),
            "reportedById": self.reported_by_id,
            "reportedByName": _user_name(self.reported_by),
            "artifactCount": self.artifacts.count(),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Defect {self.id}: {self.defect_id_code}>"


class DefectArtifact(_ArtifactMixin, db.Model):
    __tablename__ = "defect_artifacts"

    defect_id = db.Column(
        db.Integer, db.ForeignKey("defects.id", ondelete="CASCADE"), nullable=False, index=True,
    )

    def to_dict(self):
        d = self._artifact_dict()
        d["defectId"] = self.defect_id
        return d
