from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import ValidationError

from src.tutoring.config import settings
from src.tutoring.domain.models.analytics import SessionStats
from src.tutoring.domain.models.tutoring_session import (
    ACTIVE_STATUSES,
    SessionDetail,
    SessionFilters,
    SessionParty,
    SessionPatch,
    SessionStatus,
    SessionType,
    TutoringSession,
)
from src.tutoring.domain.models.user import UserRole
from src.tutoring.errors import (
    InvalidRequestError,
    InvalidRoleError,
    NotFoundError,
    SchedulingConflictError,
)
from src.tutoring.infra.db import inmemory as repos
from src.tutoring.infra.db.repositories import SessionRepository, UserRepository
from src.tutoring.services.scheduling import policy
from src.tutoring.tenancy import get_current_tenant

logger = logging.getLogger(__name__)

# Patch fields copied onto the session as-is once authorization passed.
_PLAIN_FIELDS = ("status", "notes", "meeting_link", "recording_url", "rating", "review")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchedulingService:
    """Books, reschedules and cancels tutoring sessions.

    Conflict detection and the write that follows it run under a single
    process-wide lock, so two requests cannot both claim the same slot for a
    participant. Failures raise before anything is written.
    """

    def __init__(
        self,
        *,
        session_repository: Optional[SessionRepository] = None,
        user_repository: Optional[UserRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
        cancellation_window_hours: Optional[float] = None,
    ) -> None:
        self._session_repository = session_repository
        self._user_repository = user_repository
        self._clock = clock or _utcnow
        self._cancellation_window_hours = cancellation_window_hours
        self._write_lock = threading.Lock()

    # Repositories are resolved lazily so a startup swap to SQL is picked up.

    @property
    def sessions(self) -> SessionRepository:
        return self._session_repository or repos.session_repository

    @property
    def users(self) -> UserRepository:
        return self._user_repository or repos.user_repository

    @property
    def cancellation_window_hours(self) -> float:
        if self._cancellation_window_hours is not None:
            return self._cancellation_window_hours
        return settings.cancellation_window_hours

    # Commands

    def create_session(
        self,
        *,
        student_id: UUID,
        tutor_id: UUID,
        subject: str,
        start_time: datetime,
        duration: int,
        price: float,
        session_type: SessionType = SessionType.ONE_ON_ONE,
        currency: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TutoringSession:
        student = self.users.get(student_id)
        if student is None:
            raise NotFoundError("Student not found", details={"student_id": str(student_id)})

        tutor = self.users.get(tutor_id)
        if tutor is None:
            raise NotFoundError("Tutor not found", details={"tutor_id": str(tutor_id)})

        if tutor.role != UserRole.TUTOR:
            raise InvalidRoleError("User is not a tutor", details={"tutor_id": str(tutor_id)})
        if student.role != UserRole.STUDENT:
            raise InvalidRoleError("User is not a student", details={"student_id": str(student_id)})

        now = self._clock()
        try:
            session = TutoringSession(
                id=uuid4(),
                student_id=student_id,
                tutor_id=tutor_id,
                subject=subject,
                start_time=start_time,
                duration=duration,
                status=SessionStatus.PENDING,
                session_type=session_type,
                price=price,
                currency=currency or settings.default_currency,
                notes=notes,
                created_at=now,
                updated_at=now,
                tenant_id=get_current_tenant(),
            )
        except ValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False, include_input=False)
            raise InvalidRequestError(details={"errors": errors}) from exc

        with self._write_lock:
            self._ensure_no_conflict(session)
            self.sessions.insert(session)

        logger.info(
            "Booked session %s for student %s with tutor %s at %s (%d min)",
            session.id,
            student_id,
            tutor_id,
            session.start_time.isoformat(),
            session.duration,
        )
        return session

    def update_session(
        self,
        session_id: UUID,
        patch: SessionPatch,
        *,
        acting_user_id: UUID,
        acting_role: Union[UserRole, str],
    ) -> TutoringSession:
        with self._write_lock:
            current = self.get_session(session_id)
            changes = policy.authorize_update(current, patch.changes(), acting_user_id, UserRole(acting_role))

            updated = current.model_copy(deep=True)
            time_changed = "start_time" in changes or "duration" in changes
            if time_changed:
                try:
                    updated.reschedule(
                        start_time=changes.get("start_time", current.start_time),
                        duration=changes.get("duration", current.duration),
                    )
                except ValueError as exc:
                    raise InvalidRequestError(str(exc)) from exc

            for field in _PLAIN_FIELDS:
                if field in changes:
                    setattr(updated, field, changes[field])

            # A cancelled or finished session that is put back into an active
            # state claims its slot again, so it is checked like a new booking.
            reactivated = updated.is_active and not current.is_active
            if time_changed or reactivated:
                self._ensure_no_conflict(updated, exclude_id=current.id)

            updated.updated_at = self._clock()
            self.sessions.save(updated)

        logger.info(
            "Session %s updated by %s %s (fields=%s)",
            session_id,
            UserRole(acting_role).value,
            acting_user_id,
            ",".join(sorted(changes)),
        )
        return updated

    def cancel_session(
        self,
        session_id: UUID,
        *,
        acting_user_id: UUID,
        acting_role: Union[UserRole, str],
    ) -> TutoringSession:
        with self._write_lock:
            current = self.get_session(session_id)
            policy.authorize_cancel(current, acting_user_id, UserRole(acting_role))

            now = self._clock()
            policy.ensure_cancellable(current, now=now, window_hours=self.cancellation_window_hours)

            cancelled = current.model_copy(deep=True)
            cancelled.status = SessionStatus.CANCELLED
            cancelled.updated_at = now
            self.sessions.save(cancelled)

        logger.info("Session %s cancelled by %s %s", session_id, UserRole(acting_role).value, acting_user_id)
        return cancelled

    # Queries

    def get_session(self, session_id: UUID) -> TutoringSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session not found", details={"session_id": str(session_id)})
        return session

    def list_sessions(self, filters: Optional[SessionFilters] = None) -> List[TutoringSession]:
        filters = filters or SessionFilters()
        return self.sessions.list_by_filters(
            student_id=filters.student_id,
            tutor_id=filters.tutor_id,
            statuses={filters.status} if filters.status is not None else None,
            subject=filters.subject,
            start_from=filters.start_date,
            start_until=filters.end_date,
        )

    def get_upcoming_sessions(self, user_id: UUID, role: Union[UserRole, str]) -> List[TutoringSession]:
        return self.sessions.list_by_filters(
            statuses=ACTIVE_STATUSES,
            start_from=self._clock(),
            **policy.scope_for(user_id, UserRole(role)),
        )

    def get_session_stats(self, user_id: UUID, role: Union[UserRole, str]) -> SessionStats:
        sessions = self.sessions.list_by_filters(**policy.scope_for(user_id, UserRole(role)))
        now = self._clock()

        counts = {status: 0 for status in SessionStatus}
        upcoming = 0
        total_minutes = 0
        total_price = 0.0
        for session in sessions:
            counts[session.status] += 1
            if session.is_active and session.start_time >= now:
                upcoming += 1
            if session.status != SessionStatus.CANCELLED:
                total_minutes += session.duration
                total_price += session.price

        return SessionStats(
            total=len(sessions),
            pending=counts[SessionStatus.PENDING],
            confirmed=counts[SessionStatus.CONFIRMED],
            completed=counts[SessionStatus.COMPLETED],
            cancelled=counts[SessionStatus.CANCELLED],
            no_show=counts[SessionStatus.NO_SHOW],
            upcoming=upcoming,
            total_duration_minutes=total_minutes,
            total_price=round(total_price, 2),
        )

    def describe(self, sessions: Iterable[TutoringSession]) -> List[SessionDetail]:
        """Attach party names and emails plus is_past/is_now flags for API reads."""

        now = self._clock()
        parties: Dict[UUID, Optional[SessionParty]] = {}

        def party(user_id: UUID) -> Optional[SessionParty]:
            if user_id not in parties:
                user = self.users.get(user_id)
                parties[user_id] = (
                    SessionParty(id=user.id, name=user.name, email=user.email) if user is not None else None
                )
            return parties[user_id]

        return [
            SessionDetail(
                **session.model_dump(exclude={"end_time"}),
                student=party(session.student_id),
                tutor=party(session.tutor_id),
                is_past=session.ended_by(now),
                is_now=session.in_progress_at(now),
            )
            for session in sessions
        ]

    def _ensure_no_conflict(self, session: TutoringSession, exclude_id: Optional[UUID] = None) -> None:
        conflicts = self.sessions.find_overlapping(
            participant_ids=(session.student_id, session.tutor_id),
            start=session.start_time,
            end=session.end_time,
            statuses=ACTIVE_STATUSES,
            exclude_id=exclude_id,
        )
        if conflicts:
            logger.warning(
                "Found %d conflicting sessions for student %s / tutor %s between %s and %s",
                len(conflicts),
                session.student_id,
                session.tutor_id,
                session.start_time.isoformat(),
                session.end_time.isoformat(),
            )
            raise SchedulingConflictError(conflict.id for conflict in conflicts)


scheduling_service = SchedulingService()
