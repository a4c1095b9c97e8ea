"""Authorization and cancellation rules for tutoring sessions.

Pure functions over a session and the acting user; they raise the scheduling
error taxonomy and never touch storage.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from src.tutoring.domain.models.tutoring_session import SessionStatus, TutoringSession
from src.tutoring.domain.models.user import UserRole
from src.tutoring.errors import (
    AlreadyCancelledError,
    CancellationWindowExpiredError,
    CannotCancelCompletedError,
    InsufficientPermissionsError,
    NoAllowedFieldsError,
)

# Fields a student may change on a session they booked.
STUDENT_EDITABLE_FIELDS = frozenset({"notes"})


def _is_owner(session: TutoringSession, acting_user_id: UUID, acting_role: UserRole) -> bool:
    if acting_role == UserRole.TUTOR:
        return session.tutor_id == acting_user_id
    if acting_role == UserRole.STUDENT:
        return session.student_id == acting_user_id
    return False


def authorize_update(
    session: TutoringSession,
    changes: Dict[str, Any],
    acting_user_id: UUID,
    acting_role: UserRole,
) -> Dict[str, Any]:
    """Return the subset of ``changes`` the actor may apply.

    Admins and the owning tutor get everything back. The owning student gets
    only the allow-listed fields, and must supply at least one of them.
    """

    if acting_role == UserRole.ADMIN:
        return dict(changes)

    if not _is_owner(session, acting_user_id, acting_role):
        raise InsufficientPermissionsError()

    if acting_role == UserRole.TUTOR:
        return dict(changes)

    allowed = {field: value for field, value in changes.items() if field in STUDENT_EDITABLE_FIELDS}
    if not allowed:
        raise NoAllowedFieldsError(
            details={"allowed_fields": sorted(STUDENT_EDITABLE_FIELDS)},
        )
    return allowed


def authorize_cancel(session: TutoringSession, acting_user_id: UUID, acting_role: UserRole) -> None:
    if acting_role == UserRole.ADMIN:
        return
    if not _is_owner(session, acting_user_id, acting_role):
        raise InsufficientPermissionsError()


def hours_until_start(session: TutoringSession, now: datetime) -> float:
    return (session.start_time - now).total_seconds() / 3600


def ensure_cancellable(session: TutoringSession, *, now: datetime, window_hours: float) -> None:
    """Terminal-state guard followed by the lead-time policy. Applies to every role."""

    if session.status == SessionStatus.COMPLETED:
        raise CannotCancelCompletedError()
    if session.status == SessionStatus.CANCELLED:
        raise AlreadyCancelledError()

    remaining = hours_until_start(session, now)
    if remaining < window_hours:
        raise CancellationWindowExpiredError(window_hours, remaining)


def scope_for(user_id: UUID, role: UserRole) -> Dict[str, Optional[UUID]]:
    """Repository filters restricting a query to the caller's own sessions."""

    if role == UserRole.STUDENT:
        return {"student_id": user_id}
    if role == UserRole.TUTOR:
        return {"tutor_id": user_id}
    return {}
