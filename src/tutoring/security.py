from __future__ import annotations

import hashlib
from contextvars import ContextVar
from typing import List, Optional
from uuid import NAMESPACE_URL, UUID, uuid5

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.tutoring.config import settings
from src.tutoring.domain.models.tutoring_session import TutoringSession
from src.tutoring.domain.models.user import User, UserRole
from src.tutoring.errors import AccessDeniedError
from src.tutoring.services.users.service import user_service
from src.tutoring.tenancy import tenant_dependency

# API key is expected in this header when ENABLE_API_AUTH is true.
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Stable, non-raw identifier for the current caller (a hashed API key), so
# the audit trail can correlate actions without storing the secret.
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)

ANONYMOUS_SUBJECT = "anonymous"


def anonymous_admin(tenant_id: str) -> User:
    """Synthesized admin for callers without X-User-ID while auth is disabled.

    Never written to the directory; the id is derived from the tenant so it
    stays stable across requests.
    """

    return User(
        id=uuid5(NAMESPACE_URL, f"tutoring:{ANONYMOUS_SUBJECT}:{tenant_id}"),
        email="anonymous@example.com",
        name="Anonymous Admin",
        role=UserRole.ADMIN,
        tenant_id=tenant_id,
    )


def get_current_subject() -> Optional[str]:
    """Return the current subject identifier, if any.

    Set by ``get_api_key`` when API authentication is enabled.
    """

    return _current_subject.get()


def _parse_api_keys() -> List[str]:
    """Return the configured API keys as a normalized list."""

    if not settings.api_keys:
        return []
    return [key.strip() for key in settings.api_keys.split(",") if key.strip()]


async def get_api_key(api_key: Optional[str] = Security(_api_key_header)) -> str:
    """FastAPI dependency for simple API-key based authentication.

    - If ENABLE_API_AUTH is false (default for development/tests), this is a
      no-op and always succeeds.
    - If ENABLE_API_AUTH is true, a valid API key must be supplied in the
      X-API-Key header and match the configured API_KEYS list.
    """

    if not settings.enable_api_auth:
        _current_subject.set(None)
        return ""

    allowed_keys = _parse_api_keys()
    if not allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API authentication is enabled but no API keys are configured.",
        )

    if not api_key or api_key not in allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )

    subject_id = "api-key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
    _current_subject.set(subject_id)

    return api_key


async def get_current_user(
    api_key: str = Depends(get_api_key),
    tenant_id: str = Depends(tenant_dependency),
    x_user_id: Optional[UUID] = Header(None, alias="X-User-ID"),
) -> User:
    """Resolve the acting user.

    The X-User-ID header names a user in the current tenant's directory. When
    API auth is disabled and the header is absent, the caller is treated as a
    synthesized admin for development convenience; with auth enabled the
    header is mandatory.
    """

    if x_user_id is not None:
        user = user_service.get_user(x_user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unknown user",
            )
        return user

    if get_current_subject() is None:
        return anonymous_admin(tenant_id)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="X-User-ID header is required",
    )


def ensure_can_view_session(user: User, session: TutoringSession) -> None:
    """Raise AccessDeniedError unless the user is an admin or a party to the session."""

    if user.role == UserRole.ADMIN:
        return

    if not session.involves(user.id):
        raise AccessDeniedError("Not authorized to view this session")


def ensure_is_student(user: User) -> None:
    """Raise HTTP 403 unless the user is a student; only students book sessions."""

    if user.role == UserRole.STUDENT:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only students can book sessions",
    )


def ensure_is_admin(user: User) -> None:
    if user.role == UserRole.ADMIN:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Admin access required",
    )
