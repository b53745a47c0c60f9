from pydantic import Field
from typing import List, Optional
from datetime import datetime

from dispensary.api.v1.schemas import CamelModel
from dispensary.domain.users.models import UserRole


class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole = UserRole.PHARMACIST
    phone_number: Optional[str] = Field(None, max_length=20, alias="phone")


class UserResponse(CamelModel):
    """User data without the password hash"""
    id: str
    username: str
    email: Optional[str] = None
    role: UserRole
    phone_number: Optional[str] = None
    created_at: datetime


class UserListResponse(CamelModel):
    users: List[UserResponse]
