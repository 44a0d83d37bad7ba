"""
QA Portal
Audit domain model.

Models:
    - AuditLog: append-only trail of create / update / delete / import events,
      carrying before and after snapshots of the entity.
"""

from datetime import datetime, timezone

from qaportal.models import db, iso


class AuditLog(db.Model):
    """One row per action. ``before_json`` / ``after_json`` hold ``to_dict()`` snapshots."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="project | test_case | defect | …",
    )
    entity_id = db.Column(
        db.String(36), nullable=False,
        comment="PK of the referenced entity as string",
    )
    action = db.Column(
        db.String(60), nullable=False,
        comment="create | update | delete | import.create | import.update | …",
    )

    before_json = db.Column(db.JSON, nullable=True)
    after_json = db.Column(db.JSON, nullable=True)

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "beforeJson": self.before_json,
            "afterJson": self.after_json,
            "userId": self.user_id,
            "userEmail": self.user.email if self.user else None,
            "createdAt": iso(self.created_at),
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    user_id: int | None = None,
    before: dict | None = None,
    after: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    When ``user_id`` is omitted inside a request, the JWT user is used.
    """
    if user_id is None:
        from flask import g, has_request_context
        if has_request_context():
            user_id = getattr(g, "jwt_user_id", None)

    entry = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        user_id=user_id,
        before_json=before,
        after_json=after,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
