"""
Test case blueprint — ``/api/v1/test-cases``.

Filters on the list endpoint: projectId, testCaseFileId, status, search.
"""

from flask import Blueprint

from qaportal.blueprints.record_routes import register_record_routes
from qaportal.models.testing import TestCaseArtifact
from qaportal.services.bulk_import.specs import TEST_CASE_SPEC

testing_bp = Blueprint("testing", __name__, url_prefix="/api/v1/test-cases")

TEMPLATE_EXAMPLE = {
    "projectCode": "PRJ1",
    "testCaseFileName": "Sprint 1 regression",
    "testCaseIdCode": "TC-001",
    "title": "Login with valid credentials",
    "module": "Auth",
    "preconditions": "User account exists",
    "testSteps": "1. Open login page\n2. Enter credentials\n3. Submit",
    "expectedResult": "Dashboard is shown",
    "inputData": '{"email": "qa@example.com"}',
    "severity": "High",
    "complexity": "Low",
    "status": "Pass",
    "executionDate": "2024-01-15",
    "assignedToEmail": "qa@example.com",
}

register_record_routes(
    testing_bp,
    TEST_CASE_SPEC,
    TestCaseArtifact,
    "test_case_id",
    label="Test case",
    slug="test-cases",
    template_example=TEMPLATE_EXAMPLE,
)
