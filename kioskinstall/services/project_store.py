"""
Key-value repository for project records and the current session user.

Two fixed keys hold JSON encoded values: the full project list and the
session user profile. Projects are upserted by id.
"""
import logging
from typing import List, Optional

from flask import current_app
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from kioskinstall.domain.project import Project, ProjectStatus
from kioskinstall.domain.user import SessionUser
from kioskinstall.extensions import db
from kioskinstall.models.kv_entry import KeyValueEntry

logger = logging.getLogger(__name__)

PROJECTS_KEY = 'kiosk_app_projects'
USER_KEY = 'kiosk_app_user'

_projects_adapter = TypeAdapter(List[Project])


class ProjectStoreError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ProjectStore:

    def __init__(self, session=None, max_bytes: Optional[int] = None):
        self.session = session if session is not None else db.session
        self.max_bytes = max_bytes

    # ------------------------------------------------------------------
    # raw key access
    # ------------------------------------------------------------------
    def _read(self, key: str) -> Optional[str]:
        entry = self.session.get(KeyValueEntry, key)
        return entry.value if entry else None

    def _write(self, key: str, value: str):
        if self.max_bytes is not None and len(value.encode('utf-8')) > self.max_bytes:
            raise ProjectStoreError(f"Storage quota exceeded for {key}")
        entry = self.session.get(KeyValueEntry, key)
        if entry is None:
            entry = KeyValueEntry(key=key, value=value)
            self.session.add(entry)
        else:
            entry.value = value
        self.session.commit()

    def _delete(self, key: str):
        entry = self.session.get(KeyValueEntry, key)
        if entry is not None:
            self.session.delete(entry)
            self.session.commit()

    # ------------------------------------------------------------------
    # projects
    # ------------------------------------------------------------------
    def get_projects(self) -> List[Project]:
        raw = self._read(PROJECTS_KEY)
        if not raw:
            return []
        try:
            return _projects_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error(f"Stored project list is unreadable: {e}")
            raise ProjectStoreError("Stored project list is corrupted") from e

    def get_project_by_id(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.get_projects() if p.id == project_id), None)

    def get_projects_by_status(self, status: ProjectStatus) -> List[Project]:
        return [p for p in self.get_projects() if p.status == status]

    def upsert_project(self, project: Project) -> bool:
        """
        Insert the project or replace the entry with the same id.

        Returns False when the write fails (database error or quota); the
        failure is logged and callers keep their in-memory state.
        """
        projects = self.get_projects()
        index = next((i for i, p in enumerate(projects) if p.id == project.id), None)
        if index is None:
            projects.append(project)
        else:
            projects[index] = project

        try:
            self._write(PROJECTS_KEY, _projects_adapter.dump_json(projects).decode('utf-8'))
        except ProjectStoreError as e:
            logger.warning(f"Failed to save project {project.id}, storage might be full: {e.message}")
            return False
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.warning(f"Failed to save project {project.id}: {e}")
            return False
        return True

    def delete_project(self, project_id: str) -> bool:
        projects = self.get_projects()
        remaining = [p for p in projects if p.id != project_id]
        if len(remaining) == len(projects):
            return False
        self._write(PROJECTS_KEY, _projects_adapter.dump_json(remaining).decode('utf-8'))
        return True

    # ------------------------------------------------------------------
    # session user
    # ------------------------------------------------------------------
    def get_current_user(self) -> Optional[SessionUser]:
        raw = self._read(USER_KEY)
        if not raw:
            return None
        try:
            return SessionUser.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Stored session user is unreadable, ignoring it: {e}")
            return None

    def set_current_user(self, user: Optional[SessionUser]):
        """Replace the stored session user; None removes it."""
        if user is None:
            self._delete(USER_KEY)
        else:
            self._write(USER_KEY, user.model_dump_json())


def get_project_store() -> ProjectStore:
    return ProjectStore(db.session, current_app.config.get('PROJECT_STORE_MAX_BYTES'))
