"""
Lookup blueprint — configurable pick-lists.

  GET  /api/v1/lookups/<category>  — active values ordered by sortOrder, code
  POST /api/v1/lookups             — { category, code, label?, sortOrder? }
"""

from flask import Blueprint, request

from qaportal.middleware.permission_required import require_auth
from qaportal.models import db
from qaportal.models.lookup import LookupValue
from qaportal.utils.errors import E, api_error, api_ok
from qaportal.utils.helpers import db_commit_or_error

lookup_bp = Blueprint("lookups", __name__, url_prefix="/api/v1/lookups")


@lookup_bp.route("/<category>", methods=["GET"])
@require_auth
def list_values(category):
    values = (
        LookupValue.query
        .filter(LookupValue.category == category, LookupValue.active.is_(True))
        .order_by(LookupValue.sort_order, LookupValue.code)
        .all()
    )
    return api_ok([v.to_dict() for v in values])


@lookup_bp.route("", methods=["POST"])
@require_auth
def create_value():
    data = request.get_json(silent=True) or {}
    errors = {}
    category = data.get("category")
    code = data.get("code")
    if not isinstance(category, str) or not category.strip():
        errors["category"] = "required"
    if not isinstance(code, str) or not code.strip():
        errors["code"] = "required"
    label = data.get("label")
    if label is not None and not isinstance(label, str):
        errors["label"] = "must be a string"
    sort_order = data.get("sortOrder", 0)
    if isinstance(sort_order, bool) or not isinstance(sort_order, int):
        errors["sortOrder"] = "must be an integer"
    if errors:
        return api_error(E.VALIDATION_INVALID, "Invalid", details=errors)

    value = LookupValue(
        category=category.strip(),
        code=code.strip(),
        label=label,
        sort_order=sort_order,
    )
    db.session.add(value)
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(value.to_dict(), status=201)
