from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.tutoring.api.v1.routes_sessions import router as sessions_router_v1
from src.tutoring.api.v1.routes_system import router as system_router_v1
from src.tutoring.api.v1.routes_users import router as users_router_v1
from src.tutoring.config import settings
from src.tutoring.errors import register_error_handlers
from src.tutoring.infra.db.bootstrap import init_sql_repositories
from src.tutoring.logging_config import setup_logging

app = FastAPI(title="Tutoring Sessions API")


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    Configures logging and, when USE_SQL_REPOS is enabled and a DATABASE_URL
    is configured, swaps the in-memory repositories for SQL-backed ones. In
    tests and local development without a database the in-memory
    repositories remain active.
    """

    setup_logging(settings.log_level)
    init_sql_repositories()


# CORS is permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(users_router_v1, prefix="/api/v1")
app.include_router(sessions_router_v1, prefix="/api/v1")
