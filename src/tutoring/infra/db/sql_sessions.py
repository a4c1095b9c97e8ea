from __future__ import annotations

from datetime import datetime
from typing import Collection, List, Optional
from uuid import UUID

from sqlalchemy import String, func, or_

from src.tutoring.domain.models.tutoring_session import SessionStatus, TutoringSession
from src.tutoring.infra.db.models import SessionORM
from src.tutoring.infra.db.repositories import SessionRepository
from src.tutoring.infra.db.session import SessionFactory
from src.tutoring.tenancy import get_current_tenant


class SqlSessionRepository(SessionRepository):
    """SQL-backed SessionRepository.

    Every operation opens its own ORM session and closes it before
    returning. Reads are scoped to the current tenant.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, session_id: UUID) -> Optional[TutoringSession]:
        db = self._session_factory()
        try:
            orm = db.get(SessionORM, session_id)
            if orm is None:
                return None
            if orm.tenant_id != get_current_tenant():
                return None
            return orm.to_domain()
        finally:
            db.close()

    def insert(self, session: TutoringSession) -> TutoringSession:
        db = self._session_factory()
        try:
            db.add(SessionORM.from_domain(session))
            db.commit()
            return session
        finally:
            db.close()

    def save(self, session: TutoringSession) -> TutoringSession:
        db = self._session_factory()
        try:
            existing = db.get(SessionORM, session.id)
            if existing is None:
                db.add(SessionORM.from_domain(session))
            else:
                existing.apply(session)
            db.commit()
            return session
        finally:
            db.close()

    def find_overlapping(
        self,
        *,
        participant_ids: Collection[UUID],
        start: datetime,
        end: datetime,
        statuses: Collection[SessionStatus],
        exclude_id: Optional[UUID] = None,
    ) -> List[TutoringSession]:
        participants = list(participant_ids)
        db = self._session_factory()
        try:
            query = db.query(SessionORM).filter(
                SessionORM.tenant_id == get_current_tenant(),
                or_(
                    SessionORM.student_id.in_(participants),
                    SessionORM.tutor_id.in_(participants),
                ),
                SessionORM.status.in_([s.value for s in statuses]),
                SessionORM.start_time < end,
                SessionORM.end_time > start,
            )
            if exclude_id is not None:
                query = query.filter(SessionORM.id != exclude_id)
            return [orm.to_domain() for orm in query.all()]
        finally:
            db.close()

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
        db = self._session_factory()
        try:
            query = db.query(SessionORM).filter(SessionORM.tenant_id == get_current_tenant())
            if student_id is not None:
                query = query.filter(SessionORM.student_id == student_id)
            if tutor_id is not None:
                query = query.filter(SessionORM.tutor_id == tutor_id)
            if statuses is not None:
                query = query.filter(SessionORM.status.in_([s.value for s in statuses]))
            if subject:
                lowered = func.lower(SessionORM.subject, type_=String)
                query = query.filter(lowered.contains(subject.lower(), autoescape=True))
            if start_from is not None:
                query = query.filter(SessionORM.start_time >= start_from)
            if start_until is not None:
                query = query.filter(SessionORM.start_time <= start_until)

            return [orm.to_domain() for orm in query.order_by(SessionORM.start_time.asc()).all()]
        finally:
            db.close()
