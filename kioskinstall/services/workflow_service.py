import logging
import threading
import uuid
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, Optional

from kioskinstall.domain.project import (
    REQUIRED_COUNTS,
    CapturedImage,
    ImageCategory,
    Project,
    ProjectImages,
    ProjectStatus,
)
from kioskinstall.services.capture_service import CaptureSession
from kioskinstall.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class WorkflowStep(IntEnum):
    SELECT_SITE = 1
    CAPTURE_BEFORE = 2
    CAPTURE_AFTER = 3
    CAPTURE_RECEIVING = 4
    REVIEW = 5


STEP_CATEGORIES = {
    WorkflowStep.CAPTURE_BEFORE: ImageCategory.BEFORE,
    WorkflowStep.CAPTURE_AFTER: ImageCategory.AFTER,
    WorkflowStep.CAPTURE_RECEIVING: ImageCategory.RECEIVING,
}


class WorkflowError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NoActiveWorkflowError(WorkflowError):
    status_code = 404


@dataclass(frozen=True)
class FinishResult:
    project: Project
    report: object
    saved: bool


class ProjectWorkflow:
    """
    Five step installation workflow for one technician.

    Collections are replaced, never mutated in place. ``finish_project``
    is only reachable from the review step, and the review step is only
    reachable once every category has met its required count.
    """

    def __init__(
        self,
        user_id: str,
        store_directory,
        project_store,
        report_exporter,
        watermarker,
        clock: Callable = utc_now,
        id_factory: Optional[Callable[[], str]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ):
        self.user_id = user_id
        self.store_directory = store_directory
        self.project_store = project_store
        self.report_exporter = report_exporter
        self.clock = clock
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.on_complete = on_complete
        self.started_at = clock()
        self.step = WorkflowStep.SELECT_SITE
        self.district: Optional[str] = None
        self.store_id: Optional[str] = None
        self.images = ProjectImages()
        self.finished = False
        self._sessions: Dict[ImageCategory, CaptureSession] = {
            category: CaptureSession(
                category,
                watermarker,
                on_emit=self._emitter(category),
                clock=clock,
            )
            for category in ImageCategory
        }

    def _emitter(self, category):
        def emit(image):
            self.handle_capture(category, image)
        return emit

    # ------------------------------------------------------------------
    # site selection
    # ------------------------------------------------------------------
    def select_district(self, district: str):
        self._require_step(WorkflowStep.SELECT_SITE)
        if district not in self.store_directory.districts():
            raise WorkflowError(f"Unknown district: {district}")
        if district != self.district:
            self.store_id = None
        self.district = district

    def select_store(self, store_id: str):
        self._require_step(WorkflowStep.SELECT_SITE)
        if self.district is None:
            raise WorkflowError("Select a district first")
        store = self.store_directory.get(store_id)
        if store is None or store.district != self.district:
            raise WorkflowError(f"Store {store_id} is not in {self.district}")
        self.store_id = store.id

    # ------------------------------------------------------------------
    # captures
    # ------------------------------------------------------------------
    @property
    def current_category(self) -> Optional[ImageCategory]:
        return STEP_CATEGORIES.get(self.step)

    def capture_session(self, category: ImageCategory) -> CaptureSession:
        if category is not self.current_category:
            raise WorkflowError(f"{category.value} photos are not captured at step {int(self.step)}")
        return self._sessions[category]

    def handle_capture(self, category: ImageCategory, image: CapturedImage):
        if image.category is not category:
            raise WorkflowError(f"Image tagged {image.category.value} cannot be filed under {category.value}")
        self.images = self.images.with_appended(category, image)
        logger.debug(f"Captured {category.value} image {image.id} for user {self.user_id}")

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------
    def can_proceed(self) -> bool:
        if self.step is WorkflowStep.SELECT_SITE:
            return self.store_id is not None
        category = self.current_category
        if category is not None:
            return len(self.images.for_category(category)) >= REQUIRED_COUNTS[category]
        return False

    def advance(self) -> WorkflowStep:
        if self.step is WorkflowStep.REVIEW:
            raise WorkflowError("Review is the final step; submit the project instead")
        if not self.can_proceed():
            raise WorkflowError(self._gate_message())
        self.step = WorkflowStep(self.step + 1)
        return self.step

    def go_back(self) -> WorkflowStep:
        """Step back once. Captured images are kept."""
        if self.finished:
            raise WorkflowError("Project already submitted", status_code=409)
        if self.step is WorkflowStep.SELECT_SITE:
            raise WorkflowError("Already at the first step")
        self.step = WorkflowStep(self.step - 1)
        return self.step

    def _gate_message(self) -> str:
        if self.step is WorkflowStep.SELECT_SITE:
            return "Select a store to continue"
        category = self.current_category
        have = len(self.images.for_category(category))
        return f"{REQUIRED_COUNTS[category]} {category.value.lower()} photos required, {have} captured"

    def _require_step(self, step: WorkflowStep):
        if self.finished:
            raise WorkflowError("Project already submitted", status_code=409)
        if self.step is not step:
            raise WorkflowError(f"Not available at step {int(self.step)}")

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------
    def finish_project(self) -> FinishResult:
        """
        Assemble the completed project, save it and export its report.

        The project is saved before the export runs; a failed export
        propagates ReportExportError and leaves the saved project in place.
        """
        self._require_step(WorkflowStep.REVIEW)
        if not self.images.meets_requirements():
            raise WorkflowError("Required photos are missing")
        store = self.store_directory.get(self.store_id)
        if store is None:
            raise WorkflowError(f"Store {self.store_id} no longer exists")

        project = Project(
            id=self.id_factory(),
            store_id=store.id,
            user_id=self.user_id,
            status=ProjectStatus.COMPLETED,
            started_at=self.started_at,
            completed_at=self.clock(),
            images=self.images,
        )
        saved = self.project_store.upsert_project(project)
        self.finished = True
        logger.info(f"Project {project.id} submitted for store {store.store_number} (saved={saved})")

        try:
            report = self.report_exporter.export(project, store)
        finally:
            if self.on_complete:
                self.on_complete()
        return FinishResult(project=project, report=report, saved=saved)

    def summary(self) -> dict:
        store = self.store_directory.get(self.store_id) if self.store_id else None
        counts = self.images.counts()
        category = self.current_category
        return {
            'step': int(self.step),
            'step_name': self.step.name,
            'district': self.district,
            'store': store.model_dump() if store else None,
            'started_at': self.started_at.isoformat(),
            'counts': {c.value: counts[c] for c in ImageCategory},
            'required': {c.value: REQUIRED_COUNTS[c] for c in ImageCategory},
            'total_images': sum(counts.values()),
            'can_proceed': self.can_proceed(),
            'capture': self._sessions[category].describe() if category else None,
            'finished': self.finished,
        }


class WorkflowRegistry:
    """Live workflows keyed by user id."""

    def __init__(self, factory: Callable[..., ProjectWorkflow]):
        self._factory = factory
        self._workflows: Dict[str, ProjectWorkflow] = {}
        self._lock = threading.Lock()

    def start(self, user_id: str) -> ProjectWorkflow:
        workflow = self._factory(user_id=user_id, on_complete=lambda: self.discard(user_id))
        with self._lock:
            replaced = self._workflows.get(user_id)
            self._workflows[user_id] = workflow
        if replaced is not None:
            logger.info(f"Discarded unfinished workflow for user {user_id}")
        return workflow

    def get(self, user_id: str) -> ProjectWorkflow:
        with self._lock:
            workflow = self._workflows.get(user_id)
        if workflow is None:
            raise NoActiveWorkflowError("No installation in progress")
        return workflow

    def discard(self, user_id: str):
        with self._lock:
            self._workflows.pop(user_id, None)

    def __len__(self):
        with self._lock:
            return len(self._workflows)
