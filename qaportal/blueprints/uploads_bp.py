"""Serves stored artifacts from UPLOAD_DIR at ``/uploads/<path>``."""

from flask import Blueprint, send_from_directory

from qaportal.services.artifact_storage import upload_root

uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.route("/uploads/<path:filename>", methods=["GET"])
def serve_upload(filename):
    # send_from_directory rejects paths escaping the root
    return send_from_directory(upload_root(), filename)
