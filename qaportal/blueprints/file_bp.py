"""
Test case file and defect file blueprint.

  GET    /api/v1/test-case-files[?projectId=]   |  /api/v1/defect-files[?projectId=]
  POST   /api/v1/test-case-files                |  /api/v1/defect-files
  GET    /api/v1/test-case-files/<id>           |  /api/v1/defect-files/<id>
  PUT    /api/v1/test-case-files/<id>           |  /api/v1/defect-files/<id>
  DELETE /api/v1/test-case-files/<id>  (soft)   |  /api/v1/defect-files/<id>  (soft)
"""

from flask import Blueprint, g, request

from qaportal.middleware.permission_required import require_auth
from qaportal.models.testing import DefectFile, TestCaseFile
from qaportal.services.testing_service import (
    create_parent_file,
    get_live_parent_file,
    list_parent_files,
    soft_delete_parent_file,
    update_parent_file,
)
from qaportal.utils.errors import api_ok
from qaportal.utils.helpers import db_commit_or_error

file_bp = Blueprint("files", __name__, url_prefix="/api/v1")

FILE_MODELS = {
    "test-case-files": TestCaseFile,
    "defect-files": DefectFile,
}
_KIND = "<any('test-case-files', 'defect-files'):kind>"


@file_bp.route(f"/{_KIND}", methods=["GET"])
@require_auth
def list_files(kind):
    files = list_parent_files(FILE_MODELS[kind], request.args.get("projectId", type=int))
    return api_ok([f.to_dict() for f in files])


@file_bp.route(f"/{_KIND}", methods=["POST"])
@require_auth
def create_file(kind):
    parent = create_parent_file(
        FILE_MODELS[kind], request.get_json(silent=True) or {}, author_id=g.jwt_user_id,
    )
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(parent.to_dict(), status=201)


@file_bp.route(f"/{_KIND}/<int:file_id>", methods=["GET"])
@require_auth
def get_file(kind, file_id):
    return api_ok(get_live_parent_file(FILE_MODELS[kind], file_id).to_dict())


@file_bp.route(f"/{_KIND}/<int:file_id>", methods=["PUT"])
@require_auth
def update_file(kind, file_id):
    parent = get_live_parent_file(FILE_MODELS[kind], file_id)
    update_parent_file(parent, request.get_json(silent=True) or {})
    err = db_commit_or_error()
    if err:
        return err
    return api_ok(parent.to_dict())


@file_bp.route(f"/{_KIND}/<int:file_id>", methods=["DELETE"])
@require_auth
def delete_file(kind, file_id):
    parent = get_live_parent_file(FILE_MODELS[kind], file_id)
    soft_delete_parent_file(parent)
    err = db_commit_or_error()
    if err:
        return err
    return api_ok({"deleted": True})
