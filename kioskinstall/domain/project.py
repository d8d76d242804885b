"""
Project, captured image and location models
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class ImageCategory(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    RECEIVING = "RECEIVING"


# Minimum captures per category before the workflow may move on
REQUIRED_COUNTS = {
    ImageCategory.BEFORE: 6,
    ImageCategory.AFTER: 9,
    ImageCategory.RECEIVING: 2,
}


class ProjectStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class GeoLocation(BaseModel):
    model_config = ConfigDict(frozen=True)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    def as_watermark_text(self) -> str:
        return f"Lat: {self.lat:.6f}, Lng: {self.lng:.6f}"

    def as_caption_text(self) -> str:
        return f"Lat: {self.lat:.4f}, Lng: {self.lng:.4f}"


class CapturedImage(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    data_url: str = Field(pattern=r'^data:image/[a-z]+;base64,')
    timestamp: str
    location: GeoLocation
    category: ImageCategory


class ProjectImages(BaseModel):
    model_config = ConfigDict(frozen=True)
    before: Tuple[CapturedImage, ...] = ()
    after: Tuple[CapturedImage, ...] = ()
    receiving: Tuple[CapturedImage, ...] = ()

    def for_category(self, category: ImageCategory) -> Tuple[CapturedImage, ...]:
        return getattr(self, category.value.lower())

    def with_appended(self, category: ImageCategory, image: CapturedImage) -> "ProjectImages":
        """Return a new collection with the image added at the end of its category."""
        field = category.value.lower()
        return self.model_copy(update={field: getattr(self, field) + (image,)})

    def counts(self) -> dict:
        return {category: len(self.for_category(category)) for category in ImageCategory}

    def meets_requirements(self) -> bool:
        return all(
            len(self.for_category(category)) >= required
            for category, required in REQUIRED_COUNTS.items()
        )


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    store_id: str
    user_id: str
    status: ProjectStatus = ProjectStatus.PENDING
    started_at: datetime
    completed_at: Optional[datetime] = None
    images: ProjectImages = Field(default_factory=ProjectImages)
    audit_result: Optional[str] = None


class DashboardStats(BaseModel):
    model_config = ConfigDict(frozen=True)
    total: int = 0
    completed: int = 0
    pending: int = 0
