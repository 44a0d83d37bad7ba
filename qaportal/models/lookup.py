"""Lookup values: small configurable pick-lists grouped by category (e.g. module, environment)."""

from qaportal.models import db


class LookupValue(db.Model):
    __tablename__ = "lookup_values"
    __table_args__ = (
        db.UniqueConstraint("category", "code", name="uq_lookup_values_category_code"),
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(50), nullable=False, index=True)
    code = db.Column(db.String(100), nullable=False)
    label = db.Column(db.String(200), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "category": self.category,
            "code": self.code,
            "label": self.label,
            "sortOrder": self.sort_order,
            "active": self.active,
        }

    def __repr__(self):
        return f"<LookupValue {self.category}:{self.code}>"
