"""
Session user model
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    FIELD_USER = "FIELD_USER"


class SessionUser(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    name: str
    email: EmailStr
    role: UserRole
    avatar_url: Optional[str] = None
