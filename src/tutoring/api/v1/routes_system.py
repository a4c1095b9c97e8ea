from fastapi import APIRouter

from src.tutoring.config import settings
from src.tutoring.infra.db import inmemory as repos

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/storage")
async def storage_info_v1() -> dict:
    """Report which repository backend is serving sessions.

    Returns ``{"backend": "memory"}`` or ``{"backend": "sql"}`` plus the
    configured cancellation window, so operators can confirm startup wiring.
    """

    backend = "memory" if isinstance(repos.session_repository, repos.InMemorySessionRepository) else "sql"
    return {
        "backend": backend,
        "cancellation_window_hours": settings.cancellation_window_hours,
    }
