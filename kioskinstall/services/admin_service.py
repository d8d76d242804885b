import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional

from kioskinstall.domain.project import DashboardStats, ImageCategory, Project, ProjectStatus

logger = logging.getLogger(__name__)


class AdminError(Exception):
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ProjectNotFoundError(AdminError):
    status_code = 404


class AuditInProgressError(AdminError):
    status_code = 409


class AuditGuard:
    """Tracks projects with an audit in flight; shared across requests."""

    def __init__(self):
        self._in_flight = set()
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, project_id: str):
        with self._lock:
            if project_id in self._in_flight:
                raise AuditInProgressError(f"An audit for project {project_id} is already running")
            self._in_flight.add(project_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(project_id)

    def is_running(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._in_flight


@dataclass(frozen=True)
class AuditOutcome:
    project: Project
    saved: bool


class AdminOverview:
    """
    Dashboard view over stored projects.

    Projects are loaded once when the overview is built; an audit replaces
    the affected entry in that list so the detail view shows the result
    without a reload.
    """

    def __init__(self, project_store, store_directory, audit_requester, audit_guard: Optional[AuditGuard] = None):
        self.project_store = project_store
        self.store_directory = store_directory
        self.audit_requester = audit_requester
        self.audit_guard = audit_guard or AuditGuard()
        self.projects: List[Project] = list(project_store.get_projects())

    def stats(self) -> DashboardStats:
        completed = pending = 0
        for project in self.projects:
            if project.status == ProjectStatus.COMPLETED:
                completed += 1
            elif project.status == ProjectStatus.PENDING:
                pending += 1
        return DashboardStats(total=len(self.projects), completed=completed, pending=pending)

    def chart_data(self) -> list:
        stats = self.stats()
        return [
            {'name': 'Completed', 'value': stats.completed},
            {'name': 'Pending', 'value': stats.pending},
        ]

    def _search_text(self, project: Project) -> str:
        store = self.store_directory.get(project.store_id)
        if store is None:
            return ''
        return f"{store.store_name} {store.district}".lower()

    def filter_projects(self, text: Optional[str]) -> List[Project]:
        needle = (text or '').lower()
        if not needle:
            return list(self.projects)
        return [p for p in self.projects if needle in self._search_text(p)]

    def get_project(self, project_id: str) -> Project:
        project = next((p for p in self.projects if p.id == project_id), None)
        if project is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return project

    def row(self, project: Project) -> dict:
        """List entry with the store denormalized and images reduced to counts."""
        store = self.store_directory.get(project.store_id)
        counts = project.images.counts()
        return {
            'id': project.id,
            'status': project.status.value,
            'user_id': project.user_id,
            'started_at': project.started_at.isoformat(),
            'completed_at': project.completed_at.isoformat() if project.completed_at else None,
            'store': store.model_dump() if store else None,
            'image_counts': {c.value: counts[c] for c in ImageCategory},
            'audit_result': project.audit_result,
        }

    def request_audit(self, project_id: str) -> AuditOutcome:
        project = self.get_project(project_id)
        with self.audit_guard.hold(project_id):
            logger.info(f"Requesting AI audit for project {project_id}")
            result = self.audit_requester.request_audit(project.images.after)
            audited = project.model_copy(update={'audit_result': result})
            saved = self.project_store.upsert_project(audited)
            self.projects = [audited if p.id == project_id else p for p in self.projects]
        return AuditOutcome(project=audited, saved=saved)
