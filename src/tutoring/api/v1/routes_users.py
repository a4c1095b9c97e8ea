from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field

from src.tutoring.domain.models.user import User, UserRole
from src.tutoring.errors import NotFoundError
from src.tutoring.security import ensure_is_admin, get_api_key, get_current_user
from src.tutoring.services.audit.service import audit_service
from src.tutoring.services.users.service import user_service
from src.tutoring.tenancy import tenant_dependency


router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_api_key), Depends(tenant_dependency)],
)


class UserCreateRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=50)
    role: UserRole


@router.post("/", response_model=User, status_code=status.HTTP_201_CREATED)
async def register_user(
    payload: UserCreateRequest,
    current_user: User = Depends(get_current_user),
) -> User:
    ensure_is_admin(current_user)

    user = user_service.register_user(email=payload.email, name=payload.name, role=payload.role)

    audit_service.log_event(
        action="register_user",
        resource_type="user",
        resource_id=str(user.id),
        extra={"user_id": str(current_user.id), "role": current_user.role.value, "new_role": user.role.value},
    )
    return user


@router.get("/me", response_model=User)
async def get_me(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.get("/{user_id}", response_model=User)
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
) -> User:
    # Non-admins may only look themselves up.
    if current_user.id != user_id:
        ensure_is_admin(current_user)

    user = user_service.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found", details={"user_id": str(user_id)})
    return user
