from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from fastapi import status
from httpx import ASGITransport, AsyncClient

from src.tutoring.main import app
from src.tutoring.services.users.service import user_service
from src.tutoring.tenancy import use_tenant


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _in_hours(hours: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _as(user: dict) -> dict:
    return {"X-User-ID": user["id"]}


async def _register(ac: AsyncClient, role: str) -> dict:
    # Without X-User-ID the caller is the synthesized admin (auth is disabled in tests).
    resp = await ac.post(
        "/api/v1/users/",
        json={"email": f"{role}-{uuid4().hex[:8]}@example.com", "name": f"Test {role}", "role": role},
    )
    assert resp.status_code == status.HTTP_201_CREATED
    return resp.json()


async def _book(ac: AsyncClient, student: dict, tutor: dict, hours_ahead: float, **overrides):
    body = {
        "tutor_id": tutor["id"],
        "subject": "Mathematics",
        "start_time": _in_hours(hours_ahead),
        "duration": 60,
        "price": 50,
    }
    body.update(overrides)
    return await ac.post("/api/v1/sessions/", json=body, headers=_as(student))


async def test_student_books_session():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")

        resp = await _book(ac, student, tutor, 48, notes="Help with calculus", session_type="exam-prep")
        assert resp.status_code == status.HTTP_201_CREATED
        session = resp.json()

        assert session["status"] == "pending"
        assert session["student_id"] == student["id"]
        assert session["tutor_id"] == tutor["id"]
        assert session["currency"] == "USD"
        assert session["session_type"] == "exam-prep"
        assert _parse(session["end_time"]) - _parse(session["start_time"]) == timedelta(minutes=60)


async def test_only_students_can_book():
    async with _client() as ac:
        tutor = await _register(ac, "tutor")
        other_tutor = await _register(ac, "tutor")

        resp = await _book(ac, tutor, other_tutor, 48)
        assert resp.status_code == status.HTTP_403_FORBIDDEN


async def test_overlapping_booking_returns_conflict():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor_a = await _register(ac, "tutor")
        tutor_b = await _register(ac, "tutor")

        first = await _book(ac, student, tutor_a, 48)
        assert first.status_code == status.HTTP_201_CREATED

        second = await _book(ac, student, tutor_b, 48.5)
        assert second.status_code == status.HTTP_409_CONFLICT
        detail = second.json()["detail"]
        assert detail["code"] == "SCHEDULING_CONFLICT"
        assert detail["details"]["conflicting_session_ids"] == [first.json()["id"]]


async def test_booking_with_bad_parties():
    async with _client() as ac:
        student = await _register(ac, "student")
        other_student = await _register(ac, "student")

        missing = await _book(ac, student, {"id": str(uuid4())}, 48)
        assert missing.status_code == status.HTTP_404_NOT_FOUND
        assert missing.json()["detail"]["code"] == "NOT_FOUND"

        wrong_role = await _book(ac, student, other_student, 48)
        assert wrong_role.status_code == status.HTTP_400_BAD_REQUEST
        assert wrong_role.json()["detail"]["code"] == "INVALID_ROLE"


async def test_booking_validation_errors_are_400():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")

        for overrides in (
            {"start_time": _in_hours(-1)},
            {"duration": 10},
            {"duration": 500},
            {"price": -5},
            {"currency": "JPY"},
            {"subject": "x"},
        ):
            resp = await _book(ac, student, tutor, 48, **overrides)
            assert resp.status_code == status.HTTP_400_BAD_REQUEST, overrides
            assert resp.json()["detail"]["code"] == "VALIDATION_ERROR"


async def test_get_session_visibility():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")
        outsider = await _register(ac, "student")
        session = (await _book(ac, student, tutor, 48)).json()

        for viewer in (student, tutor):
            resp = await ac.get(f"/api/v1/sessions/{session['id']}", headers=_as(viewer))
            assert resp.status_code == status.HTTP_200_OK
            assert resp.json()["id"] == session["id"]

        # Synthesized admin sees everything.
        assert (await ac.get(f"/api/v1/sessions/{session['id']}")).status_code == status.HTTP_200_OK

        denied = await ac.get(f"/api/v1/sessions/{session['id']}", headers=_as(outsider))
        assert denied.status_code == status.HTTP_403_FORBIDDEN
        assert denied.json()["detail"]["code"] == "ACCESS_DENIED"

        missing = await ac.get(f"/api/v1/sessions/{uuid4()}", headers=_as(student))
        assert missing.status_code == status.HTTP_404_NOT_FOUND

        malformed = await ac.get("/api/v1/sessions/not-an-id", headers=_as(student))
        assert malformed.status_code == status.HTTP_400_BAD_REQUEST


async def test_update_rules():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")
        outsider = await _register(ac, "student")
        session = (await _book(ac, student, tutor, 48)).json()
        url = f"/api/v1/sessions/{session['id']}"

        confirmed = await ac.put(url, json={"status": "confirmed"}, headers=_as(tutor))
        assert confirmed.status_code == status.HTTP_200_OK
        assert confirmed.json()["status"] == "confirmed"

        moved = await ac.put(url, json={"start_time": _in_hours(72)}, headers=_as(tutor))
        assert moved.status_code == status.HTTP_200_OK
        body = moved.json()
        assert _parse(body["end_time"]) - _parse(body["start_time"]) == timedelta(minutes=60)
        assert _parse(body["start_time"]) > datetime.now(timezone.utc) + timedelta(hours=71)

        link = await ac.put(url, json={"meeting_link": "https://x"}, headers=_as(student))
        assert link.status_code == status.HTTP_400_BAD_REQUEST
        assert link.json()["detail"]["code"] == "NO_ALLOWED_FIELDS"

        notes = await ac.put(url, json={"notes": "Chapter 4 please"}, headers=_as(student))
        assert notes.status_code == status.HTTP_200_OK
        assert notes.json()["notes"] == "Chapter 4 please"

        foreign = await ac.put(url, json={"notes": "hi"}, headers=_as(outsider))
        assert foreign.status_code == status.HTTP_403_FORBIDDEN
        assert foreign.json()["detail"]["code"] == "INSUFFICIENT_PERMISSIONS"

        past = await ac.put(url, json={"start_time": _in_hours(-2)}, headers=_as(tutor))
        assert past.status_code == status.HTTP_400_BAD_REQUEST


async def test_cancellation_policy():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")
        soon = (await _book(ac, student, tutor, 10)).json()
        later = (await _book(ac, student, tutor, 48)).json()

        too_late = await ac.post(f"/api/v1/sessions/{soon['id']}/cancel", headers=_as(student))
        assert too_late.status_code == status.HTTP_400_BAD_REQUEST
        assert too_late.json()["detail"]["code"] == "CANCELLATION_WINDOW_EXPIRED"
        still = await ac.get(f"/api/v1/sessions/{soon['id']}", headers=_as(student))
        assert still.json()["status"] == "pending"

        ok = await ac.post(f"/api/v1/sessions/{later['id']}/cancel", headers=_as(tutor))
        assert ok.status_code == status.HTTP_200_OK
        assert ok.json()["status"] == "cancelled"

        again = await ac.post(f"/api/v1/sessions/{later['id']}/cancel", headers=_as(student))
        assert again.status_code == status.HTTP_400_BAD_REQUEST
        assert again.json()["detail"]["code"] == "ALREADY_CANCELLED"


async def test_list_upcoming_and_stats_are_scoped_to_caller():
    async with _client() as ac:
        student = await _register(ac, "student")
        other_student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")

        mine_late = (await _book(ac, student, tutor, 96, subject="Linear Algebra")).json()
        mine_early = (await _book(ac, student, tutor, 48, subject="Statistics", price=30)).json()
        theirs = (await _book(ac, other_student, tutor, 72)).json()

        listing = await ac.get("/api/v1/sessions/", headers=_as(student))
        assert listing.status_code == status.HTTP_200_OK
        body = listing.json()
        assert body["count"] == 2
        assert [s["id"] for s in body["sessions"]] == [mine_early["id"], mine_late["id"]]

        # A student cannot widen the scope by filtering on someone else.
        spoofed = await ac.get(
            "/api/v1/sessions/",
            params={"student_id": other_student["id"]},
            headers=_as(student),
        )
        assert all(s["student_id"] == student["id"] for s in spoofed.json()["sessions"])

        by_subject = await ac.get("/api/v1/sessions/", params={"subject": "algebra"}, headers=_as(student))
        assert [s["id"] for s in by_subject.json()["sessions"]] == [mine_late["id"]]

        tutor_view = await ac.get("/api/v1/sessions/my/upcoming", headers=_as(tutor))
        assert tutor_view.status_code == status.HTTP_200_OK
        assert [s["id"] for s in tutor_view.json()["sessions"]] == [mine_early["id"], theirs["id"], mine_late["id"]]

        stats = await ac.get("/api/v1/sessions/my/stats", headers=_as(student))
        assert stats.status_code == status.HTTP_200_OK
        assert stats.json()["total"] == 2
        assert stats.json()["pending"] == 2
        assert stats.json()["upcoming"] == 2
        assert stats.json()["total_duration_minutes"] == 120
        assert stats.json()["total_price"] == 80.0


async def test_unknown_acting_user_is_rejected():
    async with _client() as ac:
        resp = await ac.get("/api/v1/sessions/my/upcoming", headers={"X-User-ID": str(uuid4())})
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED


async def test_only_admins_register_users():
    async with _client() as ac:
        student = await _register(ac, "student")

        resp = await ac.post(
            "/api/v1/users/",
            json={"email": "sneaky@example.com", "name": "Sneaky", "role": "admin"},
            headers=_as(student),
        )
        assert resp.status_code == status.HTTP_403_FORBIDDEN

        me = await ac.get("/api/v1/users/me", headers=_as(student))
        assert me.json()["id"] == student["id"]
        assert me.json()["role"] == "student"

        own = await ac.get(f"/api/v1/users/{student['id']}", headers=_as(student))
        assert own.status_code == status.HTTP_200_OK

        missing = await ac.get(f"/api/v1/users/{uuid4()}")
        assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_user_lookup_is_limited_to_self_or_admin():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")

        denied = await ac.get(f"/api/v1/users/{tutor['id']}", headers=_as(student))
        assert denied.status_code == status.HTTP_403_FORBIDDEN
        assert "email" not in denied.text

        missing = await ac.get(f"/api/v1/users/{uuid4()}", headers=_as(student))
        assert missing.status_code == status.HTTP_403_FORBIDDEN

        as_admin = await ac.get(f"/api/v1/users/{tutor['id']}")
        assert as_admin.status_code == status.HTTP_200_OK
        assert as_admin.json()["email"] == tutor["email"]


async def test_synthesized_admin_is_not_stored():
    tenant = f"scratch-{uuid4().hex[:8]}"
    async with _client() as ac:
        first = await ac.get("/api/v1/users/me", headers={"X-Tenant-ID": tenant})
        second = await ac.get("/api/v1/users/me", headers={"X-Tenant-ID": tenant})

        assert first.json()["role"] == "admin"
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["tenant_id"] == tenant

        # The synthesized id is not a directory entry.
        as_header = await ac.get(
            "/api/v1/users/me",
            headers={"X-Tenant-ID": tenant, "X-User-ID": first.json()["id"]},
        )
        assert as_header.status_code == status.HTTP_401_UNAUTHORIZED

    with use_tenant(tenant):
        assert user_service.get_user(UUID(first.json()["id"])) is None


async def test_session_reads_include_party_details():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")
        session = (await _book(ac, student, tutor, 48)).json()

        detail = await ac.get(f"/api/v1/sessions/{session['id']}", headers=_as(student))
        assert detail.status_code == status.HTTP_200_OK
        body = detail.json()
        assert body["student"] == {"id": student["id"], "name": student["name"], "email": student["email"]}
        assert body["tutor"]["name"] == tutor["name"]
        assert body["tutor"]["email"] == tutor["email"]
        assert body["is_past"] is False
        assert body["is_now"] is False

        listing = await ac.get("/api/v1/sessions/", headers=_as(tutor))
        [listed] = listing.json()["sessions"]
        assert listed["student"]["email"] == student["email"]

        upcoming = await ac.get("/api/v1/sessions/my/upcoming", headers=_as(student))
        [next_up] = upcoming.json()["sessions"]
        assert next_up["tutor"]["id"] == tutor["id"]


async def test_explicit_null_clears_meeting_link():
    async with _client() as ac:
        student = await _register(ac, "student")
        tutor = await _register(ac, "tutor")
        session = (await _book(ac, student, tutor, 48)).json()
        url = f"/api/v1/sessions/{session['id']}"

        linked = await ac.put(url, json={"meeting_link": "https://meet.example.com/abc"}, headers=_as(tutor))
        assert linked.json()["meeting_link"] == "https://meet.example.com/abc"

        cleared = await ac.put(url, json={"meeting_link": None}, headers=_as(tutor))
        assert cleared.status_code == status.HTTP_200_OK
        assert cleared.json()["meeting_link"] is None

        notes = await ac.put(url, json={"notes": None}, headers=_as(student))
        assert notes.status_code == status.HTTP_200_OK
