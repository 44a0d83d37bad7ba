"""
Artifact storage — screenshots and recordings on the local filesystem.

Layout: ``UPLOAD_DIR/<test-cases|defects>/<record id>/<random><ext>``.
The stored ``file_path`` is relative to UPLOAD_DIR and served from
``/uploads/<file_path>``.
"""

import logging
import os
import secrets

from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "video/mp4",
    "video/webm",
})

ENTITY_DIRS = {"test_case": "test-cases", "defect": "defects"}


class ArtifactError(Exception):
    """Rejected upload, carrying its HTTP status and error code."""
    def __init__(self, message, status_code=400, code="FILE_TYPE_NOT_ALLOWED"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


def upload_root() -> str:
    return os.path.abspath(current_app.config["UPLOAD_DIR"])


def _max_bytes() -> int:
    return int(current_app.config.get("MAX_FILE_SIZE_MB", 200)) * 1024 * 1024


def _extension(filename: str) -> str:
    return os.path.splitext(secure_filename(filename or ""))[1].lower()


def save_artifact(entity: str, record_id: int, upload) -> dict:
    """
    Validate and write a werkzeug ``FileStorage`` to disk.

    Returns the column values for a TestCaseArtifact / DefectArtifact row.
    Raises ArtifactError for a missing file, a disallowed MIME type or an
    oversized upload (nothing is left on disk in those cases).
    """
    if upload is None or not upload.filename:
        raise ArtifactError("File required", code="FILE_REQUIRED")

    mime = (upload.mimetype or "").lower()
    if mime not in ALLOWED_MIME_TYPES:
        raise ArtifactError(f"File type '{mime or 'unknown'}' is not allowed")

    rel_dir = os.path.join(ENTITY_DIRS[entity], str(record_id))
    abs_dir = os.path.join(upload_root(), rel_dir)
    os.makedirs(abs_dir, exist_ok=True)

    stored_name = secrets.token_urlsafe(15) + _extension(upload.filename)
    abs_path = os.path.join(abs_dir, stored_name)
    upload.save(abs_path)

    size = os.path.getsize(abs_path)
    if size > _max_bytes():
        os.remove(abs_path)
        raise ArtifactError(
            f"File exceeds {current_app.config.get('MAX_FILE_SIZE_MB', 200)} MB",
            status_code=413, code="FILE_TOO_LARGE",
        )

    logger.info("Artifact stored: %s (%d bytes)", os.path.join(rel_dir, stored_name), size)
    return {
        "type": "video" if mime.startswith("video/") else "image",
        # Forward slashes so the path doubles as the /uploads URL suffix
        "file_path": f"{ENTITY_DIRS[entity]}/{record_id}/{stored_name}",
        "original_name": upload.filename[:255],
        "mime_type": mime,
        "size_bytes": size,
    }


def delete_artifact_file(file_path: str) -> None:
    """Remove a stored file; a file that is already gone is ignored."""
    root = upload_root()
    abs_path = os.path.abspath(os.path.join(root, file_path))
    if not abs_path.startswith(root + os.sep):
        logger.warning("Refusing to delete outside upload root: %s", file_path)
        return
    try:
        os.remove(abs_path)
    except FileNotFoundError:
        logger.debug("Artifact file already missing: %s", file_path)
