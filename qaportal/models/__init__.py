"""
QA Portal
Shared SQLAlchemy handle.

Every model module imports ``db`` from here so a single metadata object
backs ``db.create_all()`` and Flask-Migrate autogeneration.
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def iso(value):
    """Render a date/datetime column for JSON output (None-safe).

    Stored datetimes are UTC; backends that drop the offset (SQLite) get it back here.
    """
    if not value:
        return None
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
