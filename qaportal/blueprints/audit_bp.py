"""
Audit blueprint.

  GET  /api/v1/audit  — newest first, paginated; filters entityType, entityId, action (prefix)
  POST /api/v1/audit  — manual entry { entity, entityId, action, before?, after? }
"""

from flask import Blueprint, g, request

from qaportal.blueprints import paginated_response
from qaportal.middleware.permission_required import require_auth
from qaportal.models.audit import AuditLog, write_audit
from qaportal.utils.errors import E, api_error, api_ok
from qaportal.utils.helpers import db_commit_or_error

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1/audit")


@audit_bp.route("", methods=["GET"])
@require_auth
def list_audit_logs():
    q = AuditLog.query

    entity_type = request.args.get("entityType")
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)

    entity_id = request.args.get("entityId")
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)

    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action.startswith(action))

    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    return paginated_response(q)


@audit_bp.route("", methods=["POST"])
@require_auth
def create_audit_log():
    data = request.get_json(silent=True) or {}
    errors = {}
    if not isinstance(data.get("entity"), str) or not data["entity"].strip():
        errors["entity"] = "required"
    entity_id = data.get("entityId")
    if isinstance(entity_id, bool) or not isinstance(entity_id, int):
        errors["entityId"] = "must be an integer"
    if not isinstance(data.get("action"), str) or not data["action"].strip():
        errors["action"] = "required"
    if errors:
        return api_error(E.VALIDATION_INVALID, "Invalid", details=errors)

    entry = write_audit(
        entity_type=data["entity"].strip(),
        entity_id=entity_id,
        action=data["action"].strip(),
        user_id=g.jwt_user_id,
        before=data.get("before"),
        after=data.get("after"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(entry.to_dict(), status=201)
