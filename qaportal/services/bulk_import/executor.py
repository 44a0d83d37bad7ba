"""
Upsert executor — create-or-update on the natural key ``(project_id, code)``.

Updates are full overwrites: a column left blank in the sheet clears the
stored value. Each row is committed on its own.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from qaportal.models import db
from qaportal.models.audit import write_audit
from qaportal.services.bulk_import.resolver import RowFailure, RowSuccess

logger = logging.getLogger(__name__)


def upsert(payload, import_spec, actor_user_id=None) -> RowSuccess | RowFailure:
    """Persist one resolved row; a database error becomes a RowFailure after rollback."""
    model = import_spec.model
    code_col = getattr(model, import_spec.code_attr)

    try:
        existing = (
            model.query
            .filter(model.project_id == payload.project_id, code_col == payload.code)
            .first()
        )
        if existing is not None:
            before = existing.to_dict()
            record = existing
            mode = "updated"
        else:
            before = None
            record = model(project_id=payload.project_id)
            setattr(record, import_spec.code_attr, payload.code)
            db.session.add(record)
            mode = "created"

        for attr in import_spec.assignable_attrs:
            setattr(record, attr, payload.fields.get(attr))

        db.session.flush()
        write_audit(
            entity_type=import_spec.entity_type,
            entity_id=record.id,
            action=f"import.{'create' if mode == 'created' else 'update'}",
            user_id=actor_user_id,
            before=before,
            after=record.to_dict(),
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        message = str(getattr(exc, "orig", None) or exc)
        logger.warning("Row %d: %s import failed: %s", payload.row, import_spec.kind, message)
        return RowFailure(payload.row, [message])

    return RowSuccess(row=payload.row, mode=mode, id=record.id)
