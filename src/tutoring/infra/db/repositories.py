from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Collection, List, Optional
from uuid import UUID

from src.tutoring.domain.models.tutoring_session import SessionStatus, TutoringSession
from src.tutoring.domain.models.user import User


class SessionRepository(ABC):
    @abstractmethod
    def get(self, session_id: UUID) -> Optional[TutoringSession]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, session: TutoringSession) -> TutoringSession:
        raise NotImplementedError

    @abstractmethod
    def save(self, session: TutoringSession) -> TutoringSession:
        raise NotImplementedError

    @abstractmethod
    def find_overlapping(
        self,
        *,
        participant_ids: Collection[UUID],
        start: datetime,
        end: datetime,
        statuses: Collection[SessionStatus],
        exclude_id: Optional[UUID] = None,
    ) -> List[TutoringSession]:
        """Sessions with a participant (as student or tutor) in ``participant_ids``,
        a status in ``statuses`` and an interval overlapping ``[start, end)``."""
        raise NotImplementedError

    @abstractmethod
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
        """Matching sessions ordered by start_time ascending."""
        raise NotImplementedError


class UserRepository(ABC):
    @abstractmethod
    def get(self, user_id: UUID) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def save(self, user: User) -> None:
        raise NotImplementedError
