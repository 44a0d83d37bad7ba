"""
Project blueprint.

  GET  /api/v1/projects        — paginated, newest first
  POST /api/v1/projects        — create { code, name, description?, status? }
  GET  /api/v1/projects/<id>
  PUT  /api/v1/projects/<id>   — partial update
"""

from flask import Blueprint, g, request

from qaportal.blueprints import paginated_response
from qaportal.middleware.permission_required import require_auth
from qaportal.models.project import Project
from qaportal.services.project_service import create_project, update_project
from qaportal.utils.errors import api_ok
from qaportal.utils.helpers import db_commit_or_error, get_or_404

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


@project_bp.route("", methods=["GET"])
@require_auth
def list_projects():
    q = Project.query
    status = request.args.get("status")
    if status:
        q = q.filter(Project.status == status)
    return paginated_response(q.order_by(Project.created_at.desc(), Project.id.desc()))


@project_bp.route("", methods=["POST"])
@require_auth
def create():
    project = create_project(request.get_json(silent=True) or {}, owner_id=g.jwt_user_id)
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(project.to_dict(), status=201)


@project_bp.route("/<int:project_id>", methods=["GET"])
@require_auth
def get(project_id):
    project, err = get_or_404(Project, project_id)
    if err:
        return err
    return api_ok(project.to_dict())


@project_bp.route("/<int:project_id>", methods=["PUT"])
@require_auth
def update(project_id):
    project, err = get_or_404(Project, project_id)
    if err:
        return err
    update_project(project, request.get_json(silent=True) or {})
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(project.to_dict())
