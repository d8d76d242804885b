from datetime import datetime, timezone

import pytest

from kioskinstall.domain.project import ImageCategory, Project, ProjectImages, ProjectStatus
from kioskinstall.services.admin_service import (
    AdminOverview,
    AuditGuard,
    AuditInProgressError,
    ProjectNotFoundError,
)
from kioskinstall.services.store_directory import StoreDirectory

STARTED = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)


class InMemoryProjectStore:
    def __init__(self, projects=()):
        self.projects = list(projects)
        self.upserts = []

    def get_projects(self):
        return list(self.projects)

    def upsert_project(self, project):
        self.upserts.append(project)
        self.projects = [project if p.id == project.id else p for p in self.projects]
        return True


class RecordingAuditRequester:
    def __init__(self, result="PASS - tidy install"):
        self.result = result
        self.calls = []

    def request_audit(self, images):
        self.calls.append(tuple(images))
        return self.result


def project(project_id, store_id, status=ProjectStatus.COMPLETED, images=None):
    return Project(id=project_id, store_id=store_id, user_id='field_001', status=status,
                   started_at=STARTED, images=images or ProjectImages())


@pytest.fixture
def projects(image_factory):
    after = tuple(image_factory(ImageCategory.AFTER) for _ in range(4))
    return [
        project('p1', '1', images=ProjectImages(after=after)),
        project('p2', '3'),
        project('p3', '5', status=ProjectStatus.PENDING),
    ]


@pytest.fixture
def store(projects):
    return InMemoryProjectStore(projects)


@pytest.fixture
def auditor():
    return RecordingAuditRequester()


@pytest.fixture
def overview(store, auditor):
    return AdminOverview(store, StoreDirectory.default(), auditor)


class TestAdminOverview:

    def test_stats(self, overview):
        stats = overview.stats()
        assert (stats.total, stats.completed, stats.pending) == (3, 2, 1)

    def test_chart_data(self, overview):
        assert overview.chart_data() == [
            {'name': 'Completed', 'value': 2},
            {'name': 'Pending', 'value': 1},
        ]

    def test_empty_store_stats(self, auditor):
        stats = AdminOverview(InMemoryProjectStore(), StoreDirectory.default(), auditor).stats()
        assert (stats.total, stats.completed, stats.pending) == (0, 0, 0)

    @pytest.mark.parametrize('text', ['north', 'NORTH', 'North'])
    def test_filter_is_case_insensitive(self, overview, text):
        assert [p.id for p in overview.filter_projects(text)] == ['p1']

    def test_filter_matches_store_name(self, overview):
        assert [p.id for p in overview.filter_projects('plaza')] == ['p2']

    def test_empty_filter_returns_all(self, overview):
        assert [p.id for p in overview.filter_projects('')] == ['p1', 'p2', 'p3']
        assert [p.id for p in overview.filter_projects(None)] == ['p1', 'p2', 'p3']

    def test_filter_no_match(self, overview):
        assert overview.filter_projects('tokyo') == []

    def test_projects_loaded_once(self, overview, store):
        store.projects.append(project('p4', '2'))
        assert overview.stats().total == 3

    def test_get_missing_project(self, overview):
        with pytest.raises(ProjectNotFoundError):
            overview.get_project('nope')

    def test_row_denormalizes_store(self, overview):
        row = overview.row(overview.get_project('p1'))
        assert row['store']['store_name'] == 'Grand Central Kiosk'
        assert row['image_counts'] == {'BEFORE': 0, 'AFTER': 4, 'RECEIVING': 0}


class TestRequestAudit:

    def test_sends_after_images_and_saves_result(self, overview, store, auditor):
        outcome = overview.request_audit('p1')

        assert auditor.calls == [overview.get_project('p1').images.after]
        assert outcome.project.audit_result == "PASS - tidy install"
        assert outcome.saved is True
        assert [p.id for p in store.upserts] == ['p1']
        assert store.upserts[0].audit_result == "PASS - tidy install"

    def test_in_memory_list_updated(self, overview):
        overview.request_audit('p1')
        assert overview.get_project('p1').audit_result == "PASS - tidy install"
        assert [p.id for p in overview.projects] == ['p1', 'p2', 'p3']

    def test_failure_string_is_stored(self, store):
        auditor = RecordingAuditRequester("AI Audit failed. Please check network or API quota.")
        overview = AdminOverview(store, StoreDirectory.default(), auditor)
        outcome = overview.request_audit('p2')
        assert outcome.project.audit_result.startswith("AI Audit failed")

    def test_second_audit_while_running_is_rejected(self, store, auditor):
        guard = AuditGuard()
        overview = AdminOverview(store, StoreDirectory.default(), auditor, guard)
        with guard.hold('p1'):
            assert guard.is_running('p1')
            with pytest.raises(AuditInProgressError):
                overview.request_audit('p1')
            # other projects are not blocked
            overview.request_audit('p2')
        assert not guard.is_running('p1')
        overview.request_audit('p1')
        assert len(auditor.calls) == 2

    def test_guard_released_on_error(self, store):
        class ExplodingRequester:
            def request_audit(self, images):
                raise RuntimeError("boom")

        guard = AuditGuard()
        overview = AdminOverview(store, StoreDirectory.default(), ExplodingRequester(), guard)
        with pytest.raises(RuntimeError):
            overview.request_audit('p1')
        assert not guard.is_running('p1')
