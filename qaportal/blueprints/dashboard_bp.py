"""
Dashboard blueprint.

  GET /api/v1/dashboard?status=&projectId=  — KPI payload (see dashboard_service)
"""

from flask import Blueprint, g, request

from qaportal.middleware.permission_required import require_auth
from qaportal.services.dashboard_service import compute_dashboard, parse_filters
from qaportal.utils.errors import api_ok

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@dashboard_bp.route("", methods=["GET"])
@require_auth
def get_dashboard():
    status, project_id = parse_filters(request.args)
    return api_ok(compute_dashboard(status, project_id, current_user_id=g.jwt_user_id))
