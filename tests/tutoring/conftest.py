from datetime import datetime, timezone

import pytest

from src.tutoring.domain.models.user import UserRole
from src.tutoring.infra.db.inmemory import InMemorySessionRepository, InMemoryUserRepository
from src.tutoring.services.scheduling.service import SchedulingService
from src.tutoring.services.users.service import UserDirectoryService

# Frozen "now" for service-level tests.
NOW = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def directory() -> UserDirectoryService:
    return UserDirectoryService(repository=InMemoryUserRepository())


@pytest.fixture
def service(directory: UserDirectoryService) -> SchedulingService:
    return SchedulingService(
        session_repository=InMemorySessionRepository(),
        user_repository=directory.repository,
        clock=lambda: NOW,
        cancellation_window_hours=24,
    )


@pytest.fixture
def people(directory: UserDirectoryService) -> dict:
    """Two students, two tutors and an admin registered in a fresh directory."""

    return {
        "s1": directory.register_user(email="s1@example.com", name="Student One", role=UserRole.STUDENT),
        "s2": directory.register_user(email="s2@example.com", name="Student Two", role=UserRole.STUDENT),
        "t1": directory.register_user(email="t1@example.com", name="Tutor One", role=UserRole.TUTOR),
        "t2": directory.register_user(email="t2@example.com", name="Tutor Two", role=UserRole.TUTOR),
        "admin": directory.register_user(email="admin@example.com", name="Admin", role=UserRole.ADMIN),
    }
