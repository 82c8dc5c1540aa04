"""User schemas."""
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr
from datetime import datetime


class RoleResponse(BaseModel):
    """Global role with its permission names."""

    id: UUID
    name: str
    permissions: List[str]
    description: Optional[str] = None

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    """Account creation input; the password is hashed before storage."""

    email: EmailStr
    full_name: str
    password: str
    is_active: bool = True
    role_ids: Optional[List[UUID]] = None


class UserResponse(BaseModel):
    """User as returned by ``/auth/me``."""

    id: UUID
    email: str
    full_name: str
    is_active: bool
    roles: List[RoleResponse] = []
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
