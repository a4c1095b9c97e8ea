from __future__ import annotations

import logging
from typing import Optional

from src.tutoring.config import settings
from src.tutoring.infra.db import inmemory as inmemory_repos
from src.tutoring.infra.db.models import Base
from src.tutoring.infra.db.session import create_db_engine, create_sqlalchemy_session_factory
from src.tutoring.infra.db.sql_sessions import SqlSessionRepository
from src.tutoring.infra.db.sql_users import SqlUserRepository

logger = logging.getLogger(__name__)


def init_sql_repositories(database_url: Optional[str] = None, *, force: bool = False) -> bool:
    """Switch the repository singletons to SQL-backed implementations.

    A no-op unless USE_SQL_REPOS is enabled (or ``force`` is passed) and a
    database URL is available; the in-memory repositories stay active
    otherwise. Returns True when the swap happened.
    """

    if not (settings.use_sql_repos or force):
        return False

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; keeping in-memory repositories")
        return False

    engine = create_db_engine(db_url)

    # Create tables if they do not exist. Real deployments should manage the
    # schema with migrations.
    Base.metadata.create_all(engine)

    session_factory = create_sqlalchemy_session_factory(engine)

    inmemory_repos.session_repository = SqlSessionRepository(session_factory)
    inmemory_repos.user_repository = SqlUserRepository(session_factory)
    logger.info("SQL repositories enabled (dialect=%s)", engine.dialect.name)
    return True
