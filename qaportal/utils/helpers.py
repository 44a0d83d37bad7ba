"""Shared blueprint helpers.

get_or_404:          tuple-return lookup (obj, err)
parse_datetime:      lenient ISO parser for JSON bodies
db_commit_or_error:  commit with IntegrityError → 409, other DB errors → 500
"""
import logging
from datetime import date, datetime, timezone

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from qaportal.models import db
from qaportal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or return a 404 error tuple.

        obj, err = get_or_404(Project, pid)
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        return None, api_error(E.NOT_FOUND, f"{label} not found")
    return obj, None


def parse_datetime(value):
    """Parse an ISO date / datetime string to an aware UTC datetime.

    Returns None for empty input; raises ValueError for anything unparseable
    so callers can report a 400.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current session, returning an error response on failure.

        err = db_commit_or_error()
        if err:
            return err
    """
    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")
