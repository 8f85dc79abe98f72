"""
Profile models for identity and role management.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    CITIZEN = "citizen"
    FIELD_OFFICER = "field_officer"
    DEPARTMENT_HEAD = "department_head"
    ADMIN = "admin"


STAFF_ROLES = frozenset({UserRole.FIELD_OFFICER, UserRole.DEPARTMENT_HEAD, UserRole.ADMIN})


class Profile(BaseModel):
    """Identity metadata, 1:1 with an authentication identity."""
    user_id: str = Field(..., description="Authentication identity")
    role: UserRole = Field(default=UserRole.CITIZEN)
    department: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    is_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class RoleUpdateRequest(BaseModel):
    """Request to change a user's role (admin only)."""
    role: UserRole
    department: Optional[str] = Field(None, max_length=200)
