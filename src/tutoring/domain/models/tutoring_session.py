from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    Field,
    TypeAdapter,
    ValidationError,
    computed_field,
    field_validator,
)

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480

_http_url = TypeAdapter(AnyHttpUrl)


class SessionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# Only sessions in these states hold a participant's time slot.
ACTIVE_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.CONFIRMED})


class SessionType(str, Enum):
    ONE_ON_ONE = "one-on-one"
    GROUP = "group"
    EXAM_PREP = "exam-prep"
    HOMEWORK_HELP = "homework-help"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_end_time(start_time: datetime, duration_minutes: int) -> datetime:
    return start_time + timedelta(minutes=duration_minutes)


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open interval test: touching intervals do not overlap."""

    return start_a < end_b and end_a > start_b


def _validate_http_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        _http_url.validate_python(value)
    except ValidationError as exc:
        raise ValueError("must be a valid http(s) URL") from exc
    return value


class TutoringSession(BaseModel):
    """A scheduled tutoring appointment between one student and one tutor.

    ``end_time`` is derived from ``start_time`` and ``duration`` and cannot be
    set on its own; rescheduling goes through :meth:`reschedule`.
    """

    id: UUID
    student_id: UUID
    tutor_id: UUID
    subject: str
    start_time: datetime
    duration: int = Field(ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)  # minutes
    status: SessionStatus = SessionStatus.PENDING
    session_type: SessionType = SessionType.ONE_ON_ONE
    price: float = Field(ge=0)
    currency: str = Currency.USD.value
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    recording_url: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    review: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # Logical tenant/marketplace this session belongs to.
    tenant_id: str

    @field_validator("start_time", "created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end_time(self) -> datetime:
        return compute_end_time(self.start_time, self.duration)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def ended_by(self, now: datetime) -> bool:
        return now > self.end_time

    def in_progress_at(self, now: datetime) -> bool:
        return self.start_time <= now <= self.end_time

    def involves(self, user_id: UUID) -> bool:
        return user_id in (self.student_id, self.tutor_id)

    def reschedule(self, *, start_time: datetime, duration: int) -> None:
        if not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
            raise ValueError(
                f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
            )
        self.start_time = ensure_utc(start_time)
        self.duration = duration


class SessionParty(BaseModel):
    id: UUID
    name: str
    email: str


class SessionDetail(TutoringSession):
    """Read view of a session for API clients.

    Carries the name and email of both parties, and time flags evaluated when
    the view was built. A party missing from the directory is reported as null.
    """

    student: Optional[SessionParty] = None
    tutor: Optional[SessionParty] = None
    is_past: bool = False
    is_now: bool = False


# Patch fields backed by non-nullable session attributes.
_REQUIRED_PATCH_FIELDS = ("start_time", "duration", "status")


class SessionPatch(BaseModel):
    """Partial update of a session. Only fields that are set count as touched."""

    start_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    status: Optional[SessionStatus] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    meeting_link: Optional[str] = None
    recording_url: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    review: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def _normalize_start(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("meeting_link", "recording_url")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        return _validate_http_url(value)

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually supplied.

        An explicit null clears an optional field such as ``meeting_link``.
        Nulls for the required fields mean "keep the current value".
        """

        supplied = self.model_dump(exclude_unset=True)
        for field in _REQUIRED_PATCH_FIELDS:
            if field in supplied and supplied[field] is None:
                del supplied[field]
        return supplied


class SessionFilters(BaseModel):
    student_id: Optional[UUID] = None
    tutor_id: Optional[UUID] = None
    status: Optional[SessionStatus] = None
    # Case-insensitive substring match on the subject.
    subject: Optional[str] = None
    # Inclusive bounds on start_time.
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_bounds(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None
