"""
User administration blueprint (Admin role).

  GET  /api/v1/users  — list users with role names
  POST /api/v1/users  — create user { email, firstName, lastName, password, roles[] }
"""

from flask import Blueprint, request

from qaportal.middleware.permission_required import require_roles
from qaportal.services.user_service import create_user, list_users
from qaportal.utils.errors import E, api_error, api_ok
from qaportal.utils.helpers import db_commit_or_error

user_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
@require_roles("Admin")
def list_all():
    return api_ok([u.to_dict(include_roles=True) for u in list_users()])


@user_bp.route("", methods=["POST"])
@require_roles("Admin")
def create():
    data = request.get_json(silent=True) or {}
    roles = data.get("roles") or []
    if not isinstance(roles, list):
        return api_error(E.VALIDATION_INVALID, "roles must be a list")

    user = create_user(
        email=data.get("email", ""),
        password=data.get("password", ""),
        first_name=data.get("firstName", ""),
        last_name=data.get("lastName", ""),
        role_names=roles,
    )
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(user.to_dict(include_roles=True), status=201)
