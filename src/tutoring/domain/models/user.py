from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr


class UserRole(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class User(BaseModel):
    id: UUID
    email: EmailStr
    name: str
    role: UserRole
    # Marketplace (tenant) this user belongs to.
    tenant_id: str
