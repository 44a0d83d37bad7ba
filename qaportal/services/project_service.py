"""Project service — create / update with audit snapshots."""

import logging

from qaportal.core.exceptions import ConflictError, ValidationError
from qaportal.models import db
from qaportal.models.audit import write_audit
from qaportal.models.project import PROJECT_STATUSES, Project

logger = logging.getLogger(__name__)


def _clean_status(value) -> str:
    status = str(value or "").strip().lower()
    if status not in PROJECT_STATUSES:
        raise ValidationError(
            f"Invalid status '{value}'. Allowed: {', '.join(PROJECT_STATUSES)}",
            details={"status": "invalid"},
        )
    return status


def _ensure_unique_code(code: str, exclude_id: int | None = None):
    q = Project.query.filter(db.func.lower(Project.code) == code.lower())
    if exclude_id is not None:
        q = q.filter(Project.id != exclude_id)
    if q.first():
        raise ConflictError("Project", "code", code)


def create_project(data: dict, owner_id: int | None = None) -> Project:
    """Create a project. Flushes and audits; caller commits."""
    code = str(data.get("code") or "").strip()
    name = str(data.get("name") or "").strip()
    if not code:
        raise ValidationError("code is required", details={"code": "required"})
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if len(code) > 50:
        raise ValidationError("code must be at most 50 characters")
    _ensure_unique_code(code)

    project = Project(
        code=code,
        name=name,
        description=(data.get("description") or None),
        status=_clean_status(data.get("status") or "ongoing"),
        owner_id=owner_id,
    )
    db.session.add(project)
    db.session.flush()
    write_audit(entity_type="project", entity_id=project.id, action="create",
                user_id=owner_id, after=project.to_dict())
    return project


def update_project(project: Project, data: dict) -> Project:
    """Partial update; only keys present in ``data`` change."""
    before = project.to_dict()

    if "code" in data:
        code = str(data.get("code") or "").strip()
        if not code:
            raise ValidationError("code cannot be empty")
        _ensure_unique_code(code, exclude_id=project.id)
        project.code = code
    if "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        project.name = name
    if "description" in data:
        project.description = data.get("description") or None
    if "status" in data:
        project.status = _clean_status(data.get("status"))

    db.session.flush()
    write_audit(entity_type="project", entity_id=project.id, action="update",
                before=before, after=project.to_dict())
    return project
