"""
Defect blueprint — ``/api/v1/defects``.

Filters on the list endpoint: projectId, defectFileId, status, search.
"""

from flask import Blueprint

from qaportal.blueprints.record_routes import register_record_routes
from qaportal.models.testing import DefectArtifact
from qaportal.services.bulk_import.specs import DEFECT_SPEC

defect_bp = Blueprint("defects", __name__, url_prefix="/api/v1/defects")

TEMPLATE_EXAMPLE = {
    "projectCode": "PRJ1",
    "defectFileName": "UAT defects",
    "defectIdCode": "DEF-001",
    "title": "Login button misaligned",
    "module": "Auth",
    "description": "Button overlaps the footer on small screens",
    "testData": '{"viewport": "375x667"}',
    "actualResults": "Button is cut off",
    "expectedResults": "Button fully visible",
    "severity": "Medium",
    "priority": "High",
    "status": "Open",
    "release": "1.0.0",
    "environment": "UAT",
    "reportedDate": "2024-01-15",
    "reportedByEmail": "qa@example.com",
}

register_record_routes(
    defect_bp,
    DEFECT_SPEC,
    DefectArtifact,
    "defect_id",
    label="Defect",
    slug="defects",
    template_example=TEMPLATE_EXAMPLE,
)
