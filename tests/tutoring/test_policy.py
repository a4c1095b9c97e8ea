from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.tutoring.domain.models.tutoring_session import (
    SessionPatch,
    SessionStatus,
    TutoringSession,
    compute_end_time,
    ensure_utc,
    intervals_overlap,
)
from src.tutoring.domain.models.user import UserRole
from src.tutoring.errors import (
    AlreadyCancelledError,
    CancellationWindowExpiredError,
    CannotCancelCompletedError,
    InsufficientPermissionsError,
    NoAllowedFieldsError,
)
from src.tutoring.services.scheduling import policy

NOW = datetime(2030, 3, 1, 9, 0, tzinfo=timezone.utc)
STUDENT_ID = uuid4()
TUTOR_ID = uuid4()


def _session(**overrides) -> TutoringSession:
    fields = dict(
        id=uuid4(),
        student_id=STUDENT_ID,
        tutor_id=TUTOR_ID,
        subject="Physics",
        start_time=NOW + timedelta(days=2),
        duration=60,
        price=45.0,
        created_at=NOW,
        updated_at=NOW,
        tenant_id="default",
    )
    fields.update(overrides)
    return TutoringSession(**fields)


def test_intervals_overlap_is_half_open():
    a_start = NOW
    a_end = NOW + timedelta(hours=1)

    assert intervals_overlap(a_start, a_end, NOW + timedelta(minutes=30), NOW + timedelta(minutes=90))
    assert intervals_overlap(a_start, a_end, NOW - timedelta(minutes=10), NOW + timedelta(minutes=5))
    assert intervals_overlap(a_start, a_end, NOW + timedelta(minutes=10), NOW + timedelta(minutes=20))
    assert not intervals_overlap(a_start, a_end, a_end, a_end + timedelta(hours=1))
    assert not intervals_overlap(a_start, a_end, a_start - timedelta(hours=1), a_start)


def test_end_time_is_derived():
    session = _session(duration=45)
    assert session.end_time == compute_end_time(session.start_time, 45)

    session.reschedule(start_time=NOW + timedelta(days=5), duration=120)
    assert session.end_time == NOW + timedelta(days=5, minutes=120)


def test_reschedule_rejects_bad_duration():
    session = _session()
    with pytest.raises(ValueError):
        session.reschedule(start_time=NOW, duration=5)


def test_naive_timestamps_are_treated_as_utc():
    naive = datetime(2030, 3, 1, 9, 0)
    assert ensure_utc(naive) == NOW
    assert _session(start_time=naive).start_time.tzinfo is not None


def test_session_time_helpers():
    session = _session(start_time=NOW, duration=60)
    assert session.in_progress_at(NOW + timedelta(minutes=30))
    assert not session.ended_by(NOW + timedelta(minutes=30))
    assert session.ended_by(NOW + timedelta(minutes=61))


def test_patch_changes_keep_explicit_nulls_for_optional_fields():
    patch = SessionPatch.model_validate({"notes": "Bring a calculator", "meeting_link": None})
    assert patch.changes() == {"notes": "Bring a calculator", "meeting_link": None}

    assert SessionPatch().changes() == {}


def test_patch_changes_drop_nulls_for_required_fields():
    patch = SessionPatch.model_validate({"start_time": None, "duration": None, "status": None, "review": None})
    assert patch.changes() == {"review": None}


def test_student_may_clear_notes():
    assert policy.authorize_update(_session(), {"notes": None}, STUDENT_ID, UserRole.STUDENT) == {"notes": None}


def test_patch_rejects_invalid_urls():
    with pytest.raises(ValueError):
        SessionPatch(meeting_link="not a url")


@pytest.mark.parametrize("role, user_id", [(UserRole.ADMIN, uuid4()), (UserRole.TUTOR, TUTOR_ID)])
def test_privileged_actors_keep_every_field(role, user_id):
    changes = {"status": SessionStatus.CONFIRMED, "meeting_link": "https://meet.example.com/a"}
    assert policy.authorize_update(_session(), changes, user_id, role) == changes


def test_student_owner_is_limited_to_notes():
    changes = {"notes": "n", "status": SessionStatus.COMPLETED}
    assert policy.authorize_update(_session(), changes, STUDENT_ID, UserRole.STUDENT) == {"notes": "n"}

    with pytest.raises(NoAllowedFieldsError):
        policy.authorize_update(_session(), {"status": SessionStatus.COMPLETED}, STUDENT_ID, UserRole.STUDENT)


@pytest.mark.parametrize(
    "role, user_id",
    [
        (UserRole.STUDENT, uuid4()),
        (UserRole.TUTOR, uuid4()),
        # A tutor id acting as a student does not own the session.
        (UserRole.STUDENT, TUTOR_ID),
    ],
)
def test_non_owners_are_rejected(role, user_id):
    with pytest.raises(InsufficientPermissionsError):
        policy.authorize_update(_session(), {"notes": "x"}, user_id, role)
    with pytest.raises(InsufficientPermissionsError):
        policy.authorize_cancel(_session(), user_id, role)


def test_ensure_cancellable_boundaries():
    policy.ensure_cancellable(_session(start_time=NOW + timedelta(hours=24)), now=NOW, window_hours=24)

    with pytest.raises(CancellationWindowExpiredError) as excinfo:
        policy.ensure_cancellable(
            _session(start_time=NOW + timedelta(hours=23, minutes=59)),
            now=NOW,
            window_hours=24,
        )
    assert excinfo.value.details["window_hours"] == 24

    with pytest.raises(CannotCancelCompletedError):
        policy.ensure_cancellable(_session(status=SessionStatus.COMPLETED), now=NOW, window_hours=24)
    with pytest.raises(AlreadyCancelledError):
        policy.ensure_cancellable(_session(status=SessionStatus.CANCELLED), now=NOW, window_hours=24)


def test_scope_for_roles():
    user_id = uuid4()
    assert policy.scope_for(user_id, UserRole.STUDENT) == {"student_id": user_id}
    assert policy.scope_for(user_id, UserRole.TUTOR) == {"tutor_id": user_id}
    assert policy.scope_for(user_id, UserRole.ADMIN) == {}
