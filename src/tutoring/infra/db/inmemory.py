from __future__ import annotations

from datetime import datetime
from typing import Collection, Dict, List, Optional
from uuid import UUID

from src.tutoring.domain.models.tutoring_session import (
    SessionStatus,
    TutoringSession,
    intervals_overlap,
)
from src.tutoring.domain.models.user import User
from src.tutoring.infra.db.repositories import SessionRepository, UserRepository
from src.tutoring.tenancy import get_current_tenant


class InMemorySessionRepository(SessionRepository):
    """Dict-backed session store scoped by the current tenant.

    Sessions are copied on the way in and out so that callers cannot change
    stored state without going through ``save``.
    """

    def __init__(self) -> None:
        self._sessions: Dict[UUID, TutoringSession] = {}

    def get(self, session_id: UUID) -> Optional[TutoringSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.tenant_id != get_current_tenant():
            return None
        return session.model_copy(deep=True)

    def insert(self, session: TutoringSession) -> TutoringSession:
        if session.id in self._sessions:
            raise KeyError(f"Session {session.id} already exists")
        self._sessions[session.id] = session.model_copy(deep=True)
        return session

    def save(self, session: TutoringSession) -> TutoringSession:
        self._sessions[session.id] = session.model_copy(deep=True)
        return session

    def find_overlapping(
        self,
        *,
        participant_ids: Collection[UUID],
        start: datetime,
        end: datetime,
        statuses: Collection[SessionStatus],
        exclude_id: Optional[UUID] = None,
    ) -> List[TutoringSession]:
        participants = set(participant_ids)
        matches = []
        for session in self._scoped():
            if exclude_id is not None and session.id == exclude_id:
                continue
            if session.status not in statuses:
                continue
            if session.student_id not in participants and session.tutor_id not in participants:
                continue
            if intervals_overlap(session.start_time, session.end_time, start, end):
                matches.append(session.model_copy(deep=True))
        return matches

    def list_by_filters(
        self,
        *,
        student_id: Optional[UUID] = None,
        tutor_id: Optional[UUID] = None,
        statuses: Optional[Collection[SessionStatus]] = None,
        subject: Optional[str] = None,
        start_from: Optional[datetime] = None,
        start_until: Optional[datetime] = None,
    ) -> List[TutoringSession]:
        needle = subject.lower() if subject else None
        matches = []
        for session in self._scoped():
            if student_id is not None and session.student_id != student_id:
                continue
            if tutor_id is not None and session.tutor_id != tutor_id:
                continue
            if statuses is not None and session.status not in statuses:
                continue
            if needle is not None and needle not in session.subject.lower():
                continue
            if start_from is not None and session.start_time < start_from:
                continue
            if start_until is not None and session.start_time > start_until:
                continue
            matches.append(session.model_copy(deep=True))
        matches.sort(key=lambda s: s.start_time)
        return matches

    def _scoped(self) -> List[TutoringSession]:
        current_tenant = get_current_tenant()
        return [s for s in self._sessions.values() if s.tenant_id == current_tenant]


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: Dict[UUID, User] = {}

    def get(self, user_id: UUID) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        if user.tenant_id != get_current_tenant():
            return None
        return user

    def save(self, user: User) -> None:
        self._users[user.id] = user


# Module-level singletons. init_sql_repositories() rebinds these names, so
# consumers look them up through this module at call time.
session_repository: SessionRepository = InMemorySessionRepository()
user_repository: UserRepository = InMemoryUserRepository()
