"""
Row resolver — turns a normalized row into a persistable payload.

Resolution order per row:
    1. project   (projectId, projectCode, projectName; id > code > name per value)
    2. parent file (id column wins over name column; must belong to the project)
    3. users     (id column, then email column; unresolved → unlinked)
    4. validation of the assembled payload (enums, lengths, ids)
"""

import logging
import re
from dataclasses import dataclass, field

from qaportal.services.bulk_import.specs import ENUM, PROJECT_COLUMNS

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^\d+$")


@dataclass
class ResolvedPayload:
    row: int
    project_id: int
    code: str
    fields: dict = field(default_factory=dict)


@dataclass
class RowSuccess:
    row: int
    mode: str
    id: int

    def to_dict(self):
        return {"row": self.row, "mode": self.mode, "id": self.id}


@dataclass
class RowFailure:
    row: int
    errors: list[str]

    def to_dict(self):
        return {"row": self.row, "errors": list(self.errors)}


def parse_id(value) -> int | None:
    """Positive integer id from a cell string, else None."""
    if value is None:
        return None
    text = str(value).strip()
    if not _ID_RE.match(text):
        return None
    parsed = int(text)
    return parsed if parsed > 0 else None


# ═══════════════════════════════════════════════════════════════
# Reference resolution
# ═══════════════════════════════════════════════════════════════

def _resolve_project(normalized, index):
    """Return (ProjectRef, None) or (None, error)."""
    candidates = [normalized.get(c) for c in PROJECT_COLUMNS]
    candidates = [c for c in candidates if c]
    if not candidates:
        return None, "Project reference is required (projectId, projectCode or projectName)"

    for value in candidates:
        project_id = parse_id(value)
        if project_id is not None:
            project = index.project_by_id(project_id)
            if project:
                return project, None
        project = index.project_by_code(value) or index.project_by_name(value)
        if project:
            return project, None

    return None, f"Invalid project reference '{candidates[0]}'"


def _resolve_parent_file(normalized, index, import_spec, project):
    """Return (file_id or None, error or None)."""
    label = import_spec.file_label
    raw_id = normalized.get(import_spec.file_id_column)
    raw_name = normalized.get(import_spec.file_name_column)

    if raw_id:
        file_id = parse_id(raw_id)
        if file_id is None:
            return None, f"Invalid {import_spec.file_id_column} '{raw_id}'"
        parent = index.parent_file_by_id(file_id)
        if parent is None:
            return None, f"{label} {file_id} not found"
        if parent.project_id != project.id:
            owner = index.project_by_id(parent.project_id)
            owner_code = owner.code if owner else parent.project_id
            return None, f"{label} {file_id} belongs to project {owner_code}, not {project.code}"
        return parent.id, None

    if raw_name:
        parent = index.parent_file_by_project_and_name(project.id, raw_name)
        if parent is None:
            return None, f"{label} '{raw_name}' not found in project {project.code}"
        return parent.id, None

    return None, None


def _resolve_user(normalized, index, ref, row):
    raw_id = normalized.get(ref.id_column)
    raw_email = normalized.get(ref.email_column)

    user_id = parse_id(raw_id)
    if user_id is not None:
        user = index.user_by_id(user_id)
        if user:
            return user.id
    if raw_email:
        user = index.user_by_email(raw_email)
        if user:
            return user.id

    if raw_id or raw_email:
        logger.info("Row %d: %s '%s' not found, left unlinked", row, ref.name, raw_id or raw_email)
    return None


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════

def _canonical_choice(value, choices):
    lowered = value.lower()
    return next((c for c in choices if c.lower() == lowered), None)


def _validate(payload, import_spec) -> list[str]:
    errors = []
    for spec in import_spec.fields:
        if not spec.attr:
            continue
        value = payload.fields.get(spec.attr)
        if value is None:
            continue
        if spec.kind == ENUM:
            canonical = _canonical_choice(value, spec.choices)
            if canonical is None:
                errors.append(
                    f"Invalid {spec.column} '{value}'. Allowed: {', '.join(spec.choices)}"
                )
            else:
                payload.fields[spec.attr] = canonical
        elif spec.max_length and isinstance(value, str) and len(value) > spec.max_length:
            errors.append(f"{spec.column} must be at most {spec.max_length} characters")

    id_attrs = [import_spec.file_attr] + [ref.attr for ref in import_spec.user_refs]
    for attr in id_attrs:
        value = payload.fields.get(attr)
        if value is not None and (not isinstance(value, int) or value <= 0):
            errors.append(f"{attr} must be a positive integer")
    if not isinstance(payload.project_id, int) or payload.project_id <= 0:
        errors.append("projectId must be a positive integer")
    return errors


def resolve_row(normalized, index, import_spec) -> ResolvedPayload | RowFailure:
    """Resolve references and validate one normalized row."""
    row = normalized.row

    project, error = _resolve_project(normalized, index)
    if error:
        return RowFailure(row, [error])

    file_id, error = _resolve_parent_file(normalized, index, import_spec, project)
    if error:
        return RowFailure(row, [error])

    fields = {}
    for spec in import_spec.fields:
        if spec.attr and spec.attr != import_spec.code_attr:
            fields[spec.attr] = normalized.get(spec.column)
    fields[import_spec.file_attr] = file_id
    for ref in import_spec.user_refs:
        fields[ref.attr] = _resolve_user(normalized, index, ref, row)

    payload = ResolvedPayload(
        row=row,
        project_id=project.id,
        code=normalized.get(import_spec.code_column),
        fields=fields,
    )
    code_spec = next(f for f in import_spec.fields if f.attr == import_spec.code_attr)
    errors = _validate(payload, import_spec)
    if code_spec.max_length and len(payload.code) > code_spec.max_length:
        errors.insert(0, f"{code_spec.column} must be at most {code_spec.max_length} characters")
    if errors:
        return RowFailure(row, errors)
    return payload
