from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator

from src.tutoring.domain.models.analytics import SessionStats
from src.tutoring.domain.models.tutoring_session import (
    Currency,
    SessionDetail,
    SessionFilters,
    SessionPatch,
    SessionStatus,
    SessionType,
    TutoringSession,
    ensure_utc,
)
from src.tutoring.domain.models.user import User, UserRole
from src.tutoring.security import ensure_can_view_session, ensure_is_student, get_api_key, get_current_user
from src.tutoring.services.audit.service import audit_service
from src.tutoring.services.scheduling.service import scheduling_service
from src.tutoring.tenancy import tenant_dependency


router = APIRouter(
    prefix="/sessions",
    tags=["sessions"],
    dependencies=[Depends(get_api_key), Depends(tenant_dependency)],
)


def _future(value: datetime) -> datetime:
    value = ensure_utc(value)
    if value <= datetime.now(timezone.utc):
        raise ValueError("Start time must be a valid future date")
    return value


class SessionCreateRequest(BaseModel):
    tutor_id: UUID
    subject: str = Field(min_length=2, max_length=100)
    start_time: datetime
    duration: int = Field(ge=15, le=480)
    session_type: SessionType = SessionType.ONE_ON_ONE
    price: float = Field(ge=0)
    currency: Optional[Currency] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start_time")
    @classmethod
    def _start_in_future(cls, value: datetime) -> datetime:
        return _future(value)


class SessionUpdateRequest(SessionPatch):
    @field_validator("start_time")
    @classmethod
    def _start_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _future(value) if value is not None else None


class SessionListResponse(BaseModel):
    sessions: List[SessionDetail]
    count: int


def _audit_extra(user: User, **extra: object) -> dict:
    return {"user_id": str(user.id), "role": user.role.value, **extra}


@router.post("/", response_model=TutoringSession, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreateRequest,
    current_user: User = Depends(get_current_user),
) -> TutoringSession:
    ensure_is_student(current_user)

    session = scheduling_service.create_session(
        student_id=current_user.id,
        tutor_id=payload.tutor_id,
        subject=payload.subject,
        start_time=payload.start_time,
        duration=payload.duration,
        session_type=payload.session_type,
        price=payload.price,
        currency=payload.currency.value if payload.currency is not None else None,
        notes=payload.notes,
    )

    audit_service.log_event(
        action="create_session",
        resource_type="tutoring_session",
        resource_id=str(session.id),
        extra=_audit_extra(current_user, tutor_id=str(session.tutor_id)),
    )
    return session


@router.get("/", response_model=SessionListResponse)
async def list_sessions(
    student_id: Optional[UUID] = None,
    tutor_id: Optional[UUID] = None,
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    subject: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
) -> SessionListResponse:
    filters = SessionFilters(
        student_id=student_id,
        tutor_id=tutor_id,
        status=status_filter,
        subject=subject,
        start_date=start_date,
        end_date=end_date,
    )
    # Non-admins only ever see their own side of the schedule.
    if current_user.role == UserRole.STUDENT:
        filters.student_id = current_user.id
    elif current_user.role == UserRole.TUTOR:
        filters.tutor_id = current_user.id

    sessions = scheduling_service.list_sessions(filters)

    audit_service.log_event(
        action="list_sessions",
        resource_type="tutoring_session",
        extra=_audit_extra(current_user, count=len(sessions)),
    )
    return SessionListResponse(sessions=scheduling_service.describe(sessions), count=len(sessions))


@router.get("/my/upcoming", response_model=SessionListResponse)
async def my_upcoming_sessions(current_user: User = Depends(get_current_user)) -> SessionListResponse:
    sessions = scheduling_service.get_upcoming_sessions(current_user.id, current_user.role)
    return SessionListResponse(sessions=scheduling_service.describe(sessions), count=len(sessions))


@router.get("/my/stats", response_model=SessionStats)
async def my_session_stats(current_user: User = Depends(get_current_user)) -> SessionStats:
    return scheduling_service.get_session_stats(current_user.id, current_user.role)


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
) -> SessionDetail:
    session = scheduling_service.get_session(session_id)
    ensure_can_view_session(current_user, session)

    audit_service.log_event(
        action="get_session",
        resource_type="tutoring_session",
        resource_id=str(session_id),
        extra=_audit_extra(current_user),
    )
    [detail] = scheduling_service.describe([session])
    return detail


@router.put("/{session_id}", response_model=TutoringSession)
async def update_session(
    session_id: UUID,
    payload: SessionUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> TutoringSession:
    session = scheduling_service.update_session(
        session_id,
        payload,
        acting_user_id=current_user.id,
        acting_role=current_user.role,
    )

    audit_service.log_event(
        action="update_session",
        resource_type="tutoring_session",
        resource_id=str(session_id),
        extra=_audit_extra(current_user, fields=sorted(payload.changes()), status=session.status.value),
    )
    return session


@router.post("/{session_id}/cancel", response_model=TutoringSession)
async def cancel_session(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
) -> TutoringSession:
    session = scheduling_service.cancel_session(
        session_id,
        acting_user_id=current_user.id,
        acting_role=current_user.role,
    )

    audit_service.log_event(
        action="cancel_session",
        resource_type="tutoring_session",
        resource_id=str(session_id),
        extra=_audit_extra(current_user),
    )
    return session
