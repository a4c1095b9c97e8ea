from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.tutoring.domain.models.tutoring_session import (
    SessionStatus,
    SessionType,
    TutoringSession,
)
from src.tutoring.domain.models.user import User, UserRole


class Base(DeclarativeBase):
    pass


def _as_utc(value: datetime) -> datetime:
    # Some backends (SQLite) hand back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    @classmethod
    def from_domain(cls, user: User) -> "UserORM":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            tenant_id=user.tenant_id,
        )

    def to_domain(self) -> User:
        return User(
            id=self.id,
            email=self.email,
            name=self.name,
            role=UserRole(self.role),
            tenant_id=self.tenant_id,
        )


class SessionORM(Base):
    __tablename__ = "tutoring_sessions"
    __table_args__ = (
        Index("ix_tutoring_sessions_student_start", "student_id", "start_time"),
        Index("ix_tutoring_sessions_tutor_start", "tutor_id", "start_time"),
        Index("ix_tutoring_sessions_status_start", "status", "start_time"),
        Index("ix_tutoring_sessions_start_end", "start_time", "end_time"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    student_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    tutor_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Denormalized from start_time + duration so overlap checks run in SQL.
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    session_type: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(String, nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    @classmethod
    def from_domain(cls, session: TutoringSession) -> "SessionORM":
        orm = cls(id=session.id)
        orm.apply(session)
        return orm

    def apply(self, session: TutoringSession) -> None:
        """Copy every mutable column from the domain model."""

        self.student_id = session.student_id
        self.tutor_id = session.tutor_id
        self.subject = session.subject
        self.start_time = session.start_time
        self.end_time = session.end_time
        self.duration = session.duration
        self.status = session.status.value
        self.session_type = session.session_type.value
        self.price = session.price
        self.currency = session.currency
        self.notes = session.notes
        self.meeting_link = session.meeting_link
        self.recording_url = session.recording_url
        self.rating = session.rating
        self.review = session.review
        self.created_at = session.created_at
        self.updated_at = session.updated_at
        self.tenant_id = session.tenant_id

    def to_domain(self) -> TutoringSession:
        return TutoringSession(
            id=self.id,
            student_id=self.student_id,
            tutor_id=self.tutor_id,
            subject=self.subject,
            start_time=_as_utc(self.start_time),
            duration=self.duration,
            status=SessionStatus(self.status),
            session_type=SessionType(self.session_type),
            price=self.price,
            currency=self.currency,
            notes=self.notes,
            meeting_link=self.meeting_link,
            recording_url=self.recording_url,
            rating=self.rating,
            review=self.review,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            tenant_id=self.tenant_id,
        )
