"""
Reference index — read-only lookup tables built once per import run.

``ReferenceIndex.build`` is pure (any iterables of objects exposing the
needed attributes); ``load_reference_index`` issues the three queries.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType

from sqlalchemy.exc import SQLAlchemyError

from qaportal.core.exceptions import ImportAbortedError
from qaportal.models.auth import User
from qaportal.models.project import Project

logger = logging.getLogger(__name__)


def _key(value) -> str:
    return str(value).strip().lower()


@dataclass(frozen=True)
class ProjectRef:
    id: int
    code: str
    name: str


@dataclass(frozen=True)
class FileRef:
    id: int
    name: str
    project_id: int


@dataclass(frozen=True)
class UserRef:
    id: int
    email: str


@dataclass(frozen=True)
class ReferenceIndex:
    _projects_by_id: MappingProxyType = field(repr=False)
    _projects_by_code: MappingProxyType = field(repr=False)
    _projects_by_name: MappingProxyType = field(repr=False)
    _files_by_id: MappingProxyType = field(repr=False)
    _files_by_project_name: MappingProxyType = field(repr=False)
    _users_by_id: MappingProxyType = field(repr=False)
    _users_by_email: MappingProxyType = field(repr=False)

    @classmethod
    def build(cls, projects, parent_files, users) -> "ReferenceIndex":
        """Snapshot the given rows. Later duplicates of a code / name / email do not replace earlier ones."""
        by_id, by_code, by_name = {}, {}, {}
        for p in projects:
            ref = ProjectRef(p.id, p.code, p.name)
            by_id[ref.id] = ref
            by_code.setdefault(_key(ref.code), ref)
            by_name.setdefault(_key(ref.name), ref)

        files_by_id, files_by_name = {}, {}
        for f in parent_files:
            ref = FileRef(f.id, f.name, f.project_id)
            files_by_id[ref.id] = ref
            files_by_name.setdefault((ref.project_id, _key(ref.name)), ref)

        users_by_id, users_by_email = {}, {}
        for u in users:
            ref = UserRef(u.id, u.email)
            users_by_id[ref.id] = ref
            users_by_email.setdefault(_key(ref.email), ref)

        return cls(
            MappingProxyType(by_id),
            MappingProxyType(by_code),
            MappingProxyType(by_name),
            MappingProxyType(files_by_id),
            MappingProxyType(files_by_name),
            MappingProxyType(users_by_id),
            MappingProxyType(users_by_email),
        )

    # ── Lookups ──────────────────────────────────────────────────────────

    def project_by_id(self, project_id: int) -> ProjectRef | None:
        return self._projects_by_id.get(project_id)

    def project_by_code(self, code: str) -> ProjectRef | None:
        return self._projects_by_code.get(_key(code))

    def project_by_name(self, name: str) -> ProjectRef | None:
        return self._projects_by_name.get(_key(name))

    def parent_file_by_id(self, file_id: int) -> FileRef | None:
        return self._files_by_id.get(file_id)

    def parent_file_by_project_and_name(self, project_id: int, name: str) -> FileRef | None:
        return self._files_by_project_name.get((project_id, _key(name)))

    def user_by_id(self, user_id: int) -> UserRef | None:
        return self._users_by_id.get(user_id)

    def user_by_email(self, email: str) -> UserRef | None:
        return self._users_by_email.get(_key(email))


def load_reference_index(import_spec) -> ReferenceIndex:
    """Query projects, live parent files and active users into a ``ReferenceIndex``.

    Raises ImportAbortedError if any of the reads fail.
    """
    file_model = import_spec.file_model
    try:
        projects = Project.query.with_entities(Project.id, Project.code, Project.name).all()
        files = (
            file_model.query
            .filter(file_model.is_deleted.is_(False))
            .with_entities(file_model.id, file_model.name, file_model.project_id)
            .all()
        )
        users = (
            User.query.filter(User.is_active.is_(True))
            .with_entities(User.id, User.email)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Reference index build failed for %s import", import_spec.kind)
        raise ImportAbortedError(f"Unable to load import reference data: {exc}") from exc

    index = ReferenceIndex.build(projects, files, users)
    logger.debug(
        "Reference index built: %d projects, %d %s files, %d users",
        len(projects), len(files), import_spec.kind, len(users),
    )
    return index
