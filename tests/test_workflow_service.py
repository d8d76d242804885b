from datetime import datetime, timedelta, timezone

import pytest

from kioskinstall.domain.project import ImageCategory, ProjectStatus
from kioskinstall.services.geolocation_service import DeviceLocationProvider, GeolocationAcquirer
from kioskinstall.services.report_service import ReportExportError, ReportResult
from kioskinstall.services.store_directory import StoreDirectory
from kioskinstall.services.watermark_service import FrameWatermarker
from kioskinstall.services.workflow_service import (
    NoActiveWorkflowError,
    ProjectWorkflow,
    WorkflowError,
    WorkflowRegistry,
    WorkflowStep,
)


class SteppingClock:
    """Each call returns a moment one minute after the previous one."""

    def __init__(self, start=datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        moment = self.current
        self.current += timedelta(minutes=1)
        return moment


class RecordingStore:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.upserts = []

    def upsert_project(self, project):
        self.upserts.append(project)
        return self.succeed


class RecordingExporter:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def export(self, project, store):
        self.calls.append((project, store))
        if self.fail:
            raise ReportExportError("disk full")
        return ReportResult(filename=f"Kiosk_Report_{store.store_number}_2026-10-19.pdf", path='/tmp/x.pdf',
                            section_count=6)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def exporter():
    return RecordingExporter()


@pytest.fixture
def completions():
    return []


@pytest.fixture
def workflow(store, exporter, completions):
    return ProjectWorkflow(
        user_id='field_001',
        store_directory=StoreDirectory.default(),
        project_store=store,
        report_exporter=exporter,
        watermarker=FrameWatermarker(),
        clock=SteppingClock(),
        id_factory=lambda: 'project-1',
        on_complete=lambda: completions.append(True),
    )


def fill(workflow, image_factory, category, count):
    for _ in range(count):
        workflow.handle_capture(category, image_factory(category))


def walk_to_review(workflow, image_factory):
    workflow.select_district('North District')
    workflow.select_store('1')
    workflow.advance()
    fill(workflow, image_factory, ImageCategory.BEFORE, 6)
    workflow.advance()
    fill(workflow, image_factory, ImageCategory.AFTER, 9)
    workflow.advance()
    fill(workflow, image_factory, ImageCategory.RECEIVING, 2)
    workflow.advance()
    assert workflow.step is WorkflowStep.REVIEW


class TestSiteSelection:

    def test_needs_store_to_proceed(self, workflow):
        assert workflow.step is WorkflowStep.SELECT_SITE
        assert not workflow.can_proceed()
        with pytest.raises(WorkflowError):
            workflow.advance()

    def test_select_district_then_store(self, workflow):
        workflow.select_district('South District')
        workflow.select_store('3')
        assert workflow.can_proceed()
        assert workflow.advance() is WorkflowStep.CAPTURE_BEFORE

    def test_store_must_belong_to_district(self, workflow):
        workflow.select_district('North District')
        with pytest.raises(WorkflowError):
            workflow.select_store('4')
        assert workflow.store_id is None

    def test_store_requires_district(self, workflow):
        with pytest.raises(WorkflowError):
            workflow.select_store('1')

    def test_changing_district_clears_store(self, workflow):
        workflow.select_district('North District')
        workflow.select_store('2')
        workflow.select_district('West District')
        assert workflow.store_id is None
        assert not workflow.can_proceed()

    def test_unknown_district_rejected(self, workflow):
        with pytest.raises(WorkflowError):
            workflow.select_district('Central District')


class TestStepGates:

    @pytest.mark.parametrize('step_category, required', [
        (ImageCategory.BEFORE, 6),
        (ImageCategory.AFTER, 9),
        (ImageCategory.RECEIVING, 2),
    ])
    def test_category_minimums(self, workflow, image_factory, step_category, required):
        workflow.select_district('North District')
        workflow.select_store('1')
        workflow.advance()
        for category in (ImageCategory.BEFORE, ImageCategory.AFTER, ImageCategory.RECEIVING):
            if category is step_category:
                break
            fill(workflow, image_factory, category, {ImageCategory.BEFORE: 6, ImageCategory.AFTER: 9}[category])
            workflow.advance()

        fill(workflow, image_factory, step_category, required - 1)
        assert not workflow.can_proceed()
        step = workflow.step
        with pytest.raises(WorkflowError):
            workflow.advance()
        assert workflow.step is step

        fill(workflow, image_factory, step_category, 1)
        assert workflow.can_proceed()

    def test_over_capture_is_allowed(self, workflow, image_factory):
        workflow.select_district('North District')
        workflow.select_store('1')
        workflow.advance()
        fill(workflow, image_factory, ImageCategory.BEFORE, 10)
        assert len(workflow.images.before) == 10
        assert workflow.can_proceed()

    def test_review_is_terminal(self, workflow, image_factory):
        walk_to_review(workflow, image_factory)
        assert not workflow.can_proceed()
        with pytest.raises(WorkflowError):
            workflow.advance()

    def test_back_keeps_captured_images(self, workflow, image_factory):
        workflow.select_district('North District')
        workflow.select_store('1')
        workflow.advance()
        fill(workflow, image_factory, ImageCategory.BEFORE, 6)
        workflow.advance()
        fill(workflow, image_factory, ImageCategory.AFTER, 3)

        assert workflow.go_back() is WorkflowStep.CAPTURE_BEFORE
        assert len(workflow.images.before) == 6
        assert len(workflow.images.after) == 3
        assert workflow.can_proceed()

    def test_back_from_first_step_rejected(self, workflow):
        with pytest.raises(WorkflowError):
            workflow.go_back()


class TestCaptures:

    def test_appends_preserve_order(self, workflow, image_factory):
        first_batch = [image_factory(ImageCategory.AFTER) for _ in range(4)]
        for image in first_batch:
            workflow.handle_capture(ImageCategory.AFTER, image)
        snapshot = workflow.images.after

        second_batch = [image_factory(ImageCategory.AFTER) for _ in range(5)]
        for image in second_batch:
            workflow.handle_capture(ImageCategory.AFTER, image)

        assert workflow.images.after[:4] == snapshot
        assert [i.id for i in workflow.images.after] == [i.id for i in first_batch + second_batch]

    def test_collections_are_replaced_not_mutated(self, workflow, image_factory):
        before = workflow.images
        workflow.handle_capture(ImageCategory.BEFORE, image_factory(ImageCategory.BEFORE))
        assert before.before == ()
        assert workflow.images is not before

    def test_mismatched_category_rejected(self, workflow, image_factory):
        with pytest.raises(WorkflowError):
            workflow.handle_capture(ImageCategory.BEFORE, image_factory(ImageCategory.AFTER))

    def test_capture_session_only_for_current_step(self, workflow):
        with pytest.raises(WorkflowError):
            workflow.capture_session(ImageCategory.BEFORE)

    def test_capture_session_feeds_collection(self, workflow, frame_factory):
        workflow.select_district('East District')
        workflow.select_store('4')
        workflow.advance()

        session = workflow.capture_session(ImageCategory.BEFORE)
        session.locate(GeolocationAcquirer(DeviceLocationProvider(latitude=25.7617, longitude=-80.1918)))
        session.trigger(lambda: frame_factory(160, 120))
        session.trigger(lambda: frame_factory(160, 120))

        assert len(workflow.images.before) == 2
        assert workflow.summary()['counts']['BEFORE'] == 2


class TestFinishProject:

    def test_unreachable_before_review(self, workflow, image_factory):
        workflow.select_district('North District')
        workflow.select_store('1')
        with pytest.raises(WorkflowError):
            workflow.finish_project()
        workflow.advance()
        fill(workflow, image_factory, ImageCategory.BEFORE, 6)
        with pytest.raises(WorkflowError):
            workflow.finish_project()

    def test_builds_saves_and_exports(self, workflow, image_factory, store, exporter, completions):
        walk_to_review(workflow, image_factory)
        result = workflow.finish_project()

        project = result.project
        assert project.id == 'project-1'
        assert project.status is ProjectStatus.COMPLETED
        assert project.store_id == '1'
        assert project.user_id == 'field_001'
        assert project.started_at == workflow.started_at
        assert project.completed_at > project.started_at
        assert [len(project.images.before), len(project.images.after), len(project.images.receiving)] == [6, 9, 2]

        assert store.upserts == [project]
        assert len(exporter.calls) == 1
        assert exporter.calls[0][1].store_name == 'Grand Central Kiosk'
        assert result.saved is True
        assert result.report.filename == 'Kiosk_Report_101_2026-10-19.pdf'
        assert completions == [True]

    def test_second_submit_rejected(self, workflow, image_factory):
        walk_to_review(workflow, image_factory)
        workflow.finish_project()
        with pytest.raises(WorkflowError) as excinfo:
            workflow.finish_project()
        assert excinfo.value.status_code == 409

    def test_save_failure_is_reported(self, image_factory, exporter):
        failing_store = RecordingStore(succeed=False)
        workflow = ProjectWorkflow('field_001', StoreDirectory.default(), failing_store, exporter, FrameWatermarker())
        walk_to_review(workflow, image_factory)
        result = workflow.finish_project()
        assert result.saved is False
        assert len(exporter.calls) == 1

    def test_export_failure_keeps_saved_project(self, image_factory, store, completions):
        workflow = ProjectWorkflow(
            'field_001', StoreDirectory.default(), store, RecordingExporter(fail=True), FrameWatermarker(),
            on_complete=lambda: completions.append(True),
        )
        walk_to_review(workflow, image_factory)
        with pytest.raises(ReportExportError):
            workflow.finish_project()
        assert len(store.upserts) == 1
        assert workflow.finished
        assert completions == [True]


class TestWorkflowRegistry:

    def make_registry(self, store, exporter):
        def factory(user_id, on_complete):
            return ProjectWorkflow(user_id, StoreDirectory.default(), store, exporter, FrameWatermarker(),
                                   on_complete=on_complete)
        return WorkflowRegistry(factory)

    def test_start_get_discard(self, store, exporter):
        registry = self.make_registry(store, exporter)
        workflow = registry.start('field_001')
        assert registry.get('field_001') is workflow
        registry.discard('field_001')
        with pytest.raises(NoActiveWorkflowError):
            registry.get('field_001')

    def test_restart_replaces_workflow(self, store, exporter):
        registry = self.make_registry(store, exporter)
        first = registry.start('field_001')
        second = registry.start('field_001')
        assert first is not second
        assert registry.get('field_001') is second
        assert len(registry) == 1

    def test_finish_discards_workflow(self, store, exporter, image_factory):
        registry = self.make_registry(store, exporter)
        workflow = registry.start('field_001')
        walk_to_review(workflow, image_factory)
        workflow.finish_project()
        assert len(registry) == 0
