"""
Seed data — roles, an admin account, a sample project and the lookup lists.

Idempotent: existing rows (matched on their natural keys) are left untouched.
Invoked by ``flask seed``.
"""

import logging

from qaportal.models import db
from qaportal.models.auth import User, UserRole
from qaportal.models.lookup import LookupValue
from qaportal.models.project import PROJECT_STATUSES, Project
from qaportal.models.testing import (
    DEFECT_PRIORITIES,
    DEFECT_SEVERITIES,
    DEFECT_STATUSES,
    TEST_CASE_COMPLEXITIES,
    TEST_CASE_SEVERITIES,
    TEST_CASE_STATUSES,
    Defect,
    TestCase,
)
from qaportal.services.user_service import ensure_roles
from qaportal.utils.crypto import hash_password

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "TempPass123!"

LOOKUP_LISTS = {
    "defect_severity": DEFECT_SEVERITIES,
    "priority": DEFECT_PRIORITIES,
    "defect_status": DEFECT_STATUSES,
    "testcase_severity": TEST_CASE_SEVERITIES,
    "testcase_complexity": TEST_CASE_COMPLEXITIES,
    "testcase_status": TEST_CASE_STATUSES,
    "project_status": PROJECT_STATUSES,
}


def _seed_admin(roles) -> User:
    admin = User.query.filter_by(email=ADMIN_EMAIL).first()
    if admin is None:
        admin = User(
            email=ADMIN_EMAIL,
            password_hash=hash_password(ADMIN_PASSWORD),
            first_name="Admin",
            last_name="User",
        )
        db.session.add(admin)
        db.session.flush()
    admin_role = roles["Admin"]
    if not UserRole.query.filter_by(user_id=admin.id, role_id=admin_role.id).first():
        db.session.add(UserRole(user_id=admin.id, role_id=admin_role.id))
    return admin


def _seed_sample_project(admin) -> Project:
    project = Project.query.filter_by(code="PRJ1").first()
    if project is None:
        project = Project(code="PRJ1", name="Sample Project",
                          description="Demo project", owner_id=admin.id)
        db.session.add(project)
        db.session.flush()

    if not TestCase.query.filter_by(project_id=project.id, test_case_id_code="TC-1").first():
        db.session.add(TestCase(
            project_id=project.id, test_case_id_code="TC-1", description="Login works",
            severity="High", complexity="Low", created_by_id=admin.id,
        ))
    if not Defect.query.filter_by(project_id=project.id, defect_id_code="DEF-1").first():
        db.session.add(Defect(
            project_id=project.id, defect_id_code="DEF-1", title="Login button misaligned",
            severity="Medium", priority="Medium", status="Open", reported_by_id=admin.id,
        ))
    return project


def _seed_lookups() -> int:
    existing = {(lv.category, lv.code) for lv in LookupValue.query.all()}
    added = 0
    for category, codes in LOOKUP_LISTS.items():
        for order, code in enumerate(codes, 1):
            if (category, code) in existing:
                continue
            db.session.add(LookupValue(
                category=category, code=code,
                label=code.replace("_", " "), sort_order=order,
            ))
            added += 1
    return added


def seed_all() -> dict:
    """Create the seed rows and commit. Returns a short summary."""
    roles = ensure_roles()
    admin = _seed_admin(roles)
    project = _seed_sample_project(admin)
    lookups_added = _seed_lookups()
    db.session.commit()
    logger.info("Seed complete: admin=%s project=%s lookups_added=%d",
                admin.email, project.code, lookups_added)
    return {"admin": admin.email, "project": project.code, "lookupsAdded": lookups_added}
