"""
Shared routes for test cases and defects.

Both resources expose the same surface; ``register_record_routes`` binds it
to a blueprint for one ImportSpec:

  GET    /                              — filtered, paginated list
  POST   /                              — create
  GET    /<id>   PUT /<id>   DELETE /<id>
  GET    /<id>/artifacts                — newest first
  POST   /<id>/artifacts                — multipart ``file``
  DELETE /<id>/artifacts/<artifactId>
  GET    /export/xlsx   GET /template/xlsx   POST /import/xlsx
"""

import io
import logging

from flask import g, request, send_file

from qaportal.blueprints import paginated_response
from qaportal.middleware.permission_required import require_auth
from qaportal.models import db
from qaportal.services.artifact_storage import ArtifactError, delete_artifact_file, save_artifact
from qaportal.services.bulk_import import run_import
from qaportal.services.spreadsheet import XLSX_MIME, build_template, build_workbook
from qaportal.services.testing_service import (
    create_record,
    delete_record,
    filter_records,
    update_record,
)
from qaportal.utils.errors import E, api_error, api_ok
from qaportal.utils.helpers import db_commit_or_error, get_or_404

logger = logging.getLogger(__name__)


def export_row(record, import_spec) -> dict:
    """Flatten a record into the import column layout (round-trips through import)."""
    row = record.to_dict()
    for ref in import_spec.user_refs:
        user = getattr(record, ref.attr.removesuffix("_id"))
        row[ref.email_column] = user.email if user else None
    return {column: row.get(column) for column in import_spec.columns}


def register_record_routes(bp, import_spec, artifact_model, artifact_fk, *, label, slug, template_example):
    """Attach CRUD, artifact and spreadsheet routes for ``import_spec`` to ``bp``."""
    model = import_spec.model

    @bp.errorhandler(ArtifactError)
    def _handle_artifact_error(error: ArtifactError):
        return api_error(error.code, error.message, status=error.status_code)

    # ── CRUD ─────────────────────────────────────────────────────────────

    @bp.route("", methods=["GET"])
    @require_auth
    def list_records():
        return paginated_response(filter_records(import_spec, request.args))

    @bp.route("", methods=["POST"])
    @require_auth
    def create():
        record = create_record(import_spec, request.get_json(silent=True) or {}, g.jwt_user_id)
        err = db_commit_or_error()
        if err:
            return err
        return api_ok(record.to_dict(), status=201)

    @bp.route("/<int:record_id>", methods=["GET"])
    @require_auth
    def get(record_id):
        record, err = get_or_404(model, record_id, label)
        if err:
            return err
        return api_ok(record.to_dict())

    @bp.route("/<int:record_id>", methods=["PUT"])
    @require_auth
    def update(record_id):
        record, err = get_or_404(model, record_id, label)
        if err:
            return err
        update_record(record, import_spec, request.get_json(silent=True) or {})
        err = db_commit_or_error()
        if err:
            return err
        return api_ok(record.to_dict())

    @bp.route("/<int:record_id>", methods=["DELETE"])
    @require_auth
    def delete(record_id):
        record, err = get_or_404(model, record_id, label)
        if err:
            return err
        paths = delete_record(record, import_spec)
        err = db_commit_or_error()
        if err:
            return err
        for path in paths:
            delete_artifact_file(path)
        return api_ok({"deleted": True})

    # ── Artifacts ────────────────────────────────────────────────────────

    @bp.route("/<int:record_id>/artifacts", methods=["GET"])
    @require_auth
    def list_artifacts(record_id):
        record, err = get_or_404(model, record_id, label)
        if err:
            return err
        items = record.artifacts.order_by(
            artifact_model.created_at.desc(), artifact_model.id.desc()
        ).all()
        return api_ok([a.to_dict() for a in items])

    @bp.route("/<int:record_id>/artifacts", methods=["POST"])
    @require_auth
    def upload_artifact(record_id):
        record, err = get_or_404(model, record_id, label)
        if err:
            return err
        stored = save_artifact(import_spec.entity_type, record.id, request.files.get("file"))
        artifact = artifact_model(**{artifact_fk: record.id}, **stored)
        db.session.add(artifact)
        err = db_commit_or_error()
        if err:
            delete_artifact_file(stored["file_path"])
            return err
        return api_ok(artifact.to_dict(), status=201)

    @bp.route("/<int:record_id>/artifacts/<int:artifact_id>", methods=["DELETE"])
    @require_auth
    def delete_artifact(record_id, artifact_id):
        artifact = db.session.get(artifact_model, artifact_id)
        if not artifact or getattr(artifact, artifact_fk) != record_id:
            return api_error(E.NOT_FOUND, "Artifact not found")
        path = artifact.file_path
        db.session.delete(artifact)
        err = db_commit_or_error()
        if err:
            return err
        delete_artifact_file(path)
        return api_ok({"deleted": True})

    # ── Spreadsheet ──────────────────────────────────────────────────────

    @bp.route("/export/xlsx", methods=["GET"])
    @require_auth
    def export_xlsx():
        records = filter_records(import_spec, request.args).all()
        data = build_workbook(
            import_spec.columns,
            [export_row(r, import_spec) for r in records],
            sheet_title=label + "s",
        )
        return send_file(io.BytesIO(data), mimetype=XLSX_MIME,
                         as_attachment=True, download_name=f"{slug}.xlsx")

    @bp.route("/template/xlsx", methods=["GET"])
    @require_auth
    def template_xlsx():
        data = build_template(import_spec.columns, template_example)
        return send_file(io.BytesIO(data), mimetype=XLSX_MIME,
                         as_attachment=True, download_name=f"{slug}-template.xlsx")

    @bp.route("/import/xlsx", methods=["POST"])
    @require_auth
    def import_xlsx():
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return api_error(E.FILE_REQUIRED, "File required")
        summary = run_import(
            upload.read(),
            import_spec.kind,
            filename=upload.filename,
            actor_user_id=g.jwt_user_id,
        )
        return api_ok(summary.to_dict())
