"""Testing service layer — test case / defect files and their records.

Transaction policy: functions flush for ID generation, never commit.
The route handler is responsible for db.session.commit().

Test cases and defects share one code path driven by their ImportSpec
(``TEST_CASE_SPEC`` / ``DEFECT_SPEC``), so the JSON API and the spreadsheet
import accept the same camelCase field names and enum values.
"""
import logging

from qaportal.core.exceptions import ConflictError, NotFoundError, ValidationError
from qaportal.models import db
from qaportal.models.audit import write_audit
from qaportal.models.auth import User
from qaportal.models.project import Project
from qaportal.services.bulk_import.specs import DATE, ENUM, JSON, TEXT
from qaportal.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)

FILE_TEXT_FIELDS = {
    "version": ("version", 50),
    "environment": ("environment", 100),
    "releaseBuild": ("release_build", 100),
    "refer": ("refer", 200),
}


# ── Shared helpers ───────────────────────────────────────────────────────────

def _positive_int(value, field):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer", details={field: "invalid"})
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer", details={field: "invalid"}) from None
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive integer", details={field: "invalid"})
    return parsed


def _require_project(value) -> Project:
    project_id = _positive_int(value, "projectId")
    if project_id is None:
        raise ValidationError("projectId is required", details={"projectId": "required"})
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", project_id)
    return project


def _require_user(value, field):
    user_id = _positive_int(value, field)
    if user_id is not None and not db.session.get(User, user_id):
        raise ValidationError(f"{field} {user_id} does not exist", details={field: "not found"})
    return user_id


# ═════════════════════════════════════════════════════════════════════════════
# Test case files / defect files
# ═════════════════════════════════════════════════════════════════════════════

def list_parent_files(file_model, project_id=None):
    q = file_model.query.filter(file_model.is_deleted.is_(False))
    if project_id:
        q = q.filter(file_model.project_id == project_id)
    return q.order_by(file_model.created_at.desc(), file_model.id.desc()).all()


def _apply_file_fields(parent, data):
    for key, (attr, max_len) in FILE_TEXT_FIELDS.items():
        if key in data:
            value = str(data.get(key) or "").strip() or None
            if value and len(value) > max_len:
                raise ValidationError(f"{key} must be at most {max_len} characters")
            setattr(parent, attr, value)


def create_parent_file(file_model, data, author_id=None):
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    project = _require_project(data.get("projectId"))

    parent = file_model(project_id=project.id, name=name, author_id=author_id)
    _apply_file_fields(parent, data)
    db.session.add(parent)
    db.session.flush()
    write_audit(entity_type=file_model.__tablename__[:-1], entity_id=parent.id,
                action="create", user_id=author_id, after=parent.to_dict())
    return parent


def update_parent_file(parent, data):
    before = parent.to_dict()
    if "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        parent.name = name
    if "projectId" in data:
        parent.project_id = _require_project(data.get("projectId")).id
    _apply_file_fields(parent, data)
    db.session.flush()
    write_audit(entity_type=type(parent).__tablename__[:-1], entity_id=parent.id,
                action="update", before=before, after=parent.to_dict())
    return parent


def soft_delete_parent_file(parent):
    """Hide the file; its records stay and keep their link."""
    parent.is_deleted = True
    db.session.flush()
    write_audit(entity_type=type(parent).__tablename__[:-1], entity_id=parent.id,
                action="delete", before=parent.to_dict())


def get_live_parent_file(file_model, file_id):
    parent = db.session.get(file_model, file_id)
    if not parent or parent.is_deleted:
        raise NotFoundError(file_model.__name__, file_id)
    return parent


# ═════════════════════════════════════════════════════════════════════════════
# Test cases / defects
# ═════════════════════════════════════════════════════════════════════════════

def _coerce_field(spec, value):
    """Coerce one JSON body value according to its FieldSpec."""
    if spec.kind == JSON:
        if isinstance(value, str) and not value.strip():
            return None
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        if spec.required:
            raise ValidationError(f"{spec.column} is required", details={spec.column: "required"})
        return None
    if spec.kind == DATE:
        try:
            return parse_datetime(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid date '{value}'", details={spec.column: "invalid"}) from None

    text = str(value).strip()
    if spec.kind == ENUM:
        canonical = next((c for c in spec.choices if c.lower() == text.lower()), None)
        if canonical is None:
            raise ValidationError(
                f"Invalid {spec.column} '{text}'. Allowed: {', '.join(spec.choices)}",
                details={spec.column: "invalid"},
            )
        return canonical
    if spec.kind != TEXT and spec.max_length and len(text) > spec.max_length:
        raise ValidationError(
            f"{spec.column} must be at most {spec.max_length} characters",
            details={spec.column: "too long"},
        )
    return text


def _ensure_unique_code(import_spec, project_id, code, exclude_id=None):
    model = import_spec.model
    q = model.query.filter(
        model.project_id == project_id,
        getattr(model, import_spec.code_attr) == code,
    )
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first():
        raise ConflictError(model.__name__, import_spec.code_column, code)


def _apply_record_fields(record, import_spec, data, partial):
    for spec in import_spec.fields:
        if spec.attr == import_spec.code_attr:
            continue
        if partial and spec.column not in data:
            continue
        setattr(record, spec.attr, _coerce_field(spec, data.get(spec.column)))

    if not partial or import_spec.file_id_column in data:
        file_id = _positive_int(data.get(import_spec.file_id_column), import_spec.file_id_column)
        if file_id is not None:
            parent = get_live_parent_file(import_spec.file_model, file_id)
            if parent.project_id != record.project_id:
                raise ValidationError(
                    f"{import_spec.file_label} {file_id} belongs to another project",
                    details={import_spec.file_id_column: "project mismatch"},
                )
        setattr(record, import_spec.file_attr, file_id)

    for ref in import_spec.user_refs:
        if not partial or ref.id_column in data:
            setattr(record, ref.attr, _require_user(data.get(ref.id_column), ref.id_column))


def filter_records(import_spec, args):
    """Build the list query for test cases / defects from request args."""
    model = import_spec.model
    q = model.query
    project_id = args.get("projectId", type=int)
    if project_id:
        q = q.filter(model.project_id == project_id)
    file_id = args.get(import_spec.file_id_column, type=int)
    if file_id:
        q = q.filter(getattr(model, import_spec.file_attr) == file_id)
    status = (args.get("status") or "").strip()
    if status:
        q = q.filter(db.func.lower(model.status) == status.lower())
    search = (args.get("search") or "").strip()
    if search:
        term = f"%{search}%"
        q = q.filter(db.or_(
            getattr(model, import_spec.code_attr).ilike(term),
            model.title.ilike(term),
            model.description.ilike(term),
        ))
    return q.order_by(model.created_at.desc(), model.id.desc())


def create_record(import_spec, data, actor_id=None):
    """Create a test case or defect from a camelCase JSON body."""
    code_spec = next(f for f in import_spec.fields if f.attr == import_spec.code_attr)
    code = _coerce_field(code_spec, data.get(code_spec.column))
    project = _require_project(data.get("projectId"))
    _ensure_unique_code(import_spec, project.id, code)

    record = import_spec.model(project_id=project.id)
    setattr(record, import_spec.code_attr, code)
    _apply_record_fields(record, import_spec, data, partial=False)

    # The creating user is the author unless the body names one
    author_ref = import_spec.user_refs[-1]
    if getattr(record, author_ref.attr) is None and actor_id:
        setattr(record, author_ref.attr, actor_id)

    db.session.add(record)
    db.session.flush()
    write_audit(entity_type=import_spec.entity_type, entity_id=record.id,
                action="create", user_id=actor_id, after=record.to_dict())
    return record


def update_record(record, import_spec, data):
    """Partial update; only keys present in ``data`` change."""
    before = record.to_dict()
    if "projectId" in data:
        record.project_id = _require_project(data.get("projectId")).id

    code_spec = next(f for f in import_spec.fields if f.attr == import_spec.code_attr)
    if code_spec.column in data or "projectId" in data:
        code = (
            _coerce_field(code_spec, data.get(code_spec.column))
            if code_spec.column in data
            else getattr(record, import_spec.code_attr)
        )
        _ensure_unique_code(import_spec, record.project_id, code, exclude_id=record.id)
        setattr(record, import_spec.code_attr, code)

    _apply_record_fields(record, import_spec, data, partial=True)
    db.session.flush()
    write_audit(entity_type=import_spec.entity_type, entity_id=record.id,
                action="update", before=before, after=record.to_dict())
    return record


def delete_record(record, import_spec):
    """Delete a record; returns the artifact paths whose files the caller should remove."""
    paths = [a.file_path for a in record.artifacts]
    write_audit(entity_type=import_spec.entity_type, entity_id=record.id,
                action="delete", before=record.to_dict())
    db.session.delete(record)
    db.session.flush()
    return paths
