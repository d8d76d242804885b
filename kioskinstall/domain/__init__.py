"""
Domain models for kiosk installation projects
"""

from .store import Store
from .user import SessionUser, UserRole
from .project import (
    REQUIRED_COUNTS,
    CapturedImage,
    DashboardStats,
    GeoLocation,
    ImageCategory,
    Project,
    ProjectImages,
    ProjectStatus,
)

__all__ = [
    "Store", "SessionUser", "UserRole", "REQUIRED_COUNTS", "CapturedImage",
    "DashboardStats", "GeoLocation", "ImageCategory", "Project",
    "ProjectImages", "ProjectStatus",
]
