from __future__ import annotations

from collections.abc import Callable

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

# Zero-argument callable returning a fresh ORM session. Repositories open one
# per operation and close it before returning.
SessionFactory = Callable[[], Session]


def create_db_engine(database_url: str) -> Engine:
    return create_engine(database_url, future=True)


def create_sqlalchemy_session_factory(engine: Engine) -> SessionFactory:
    """Build a SessionFactory producing SQLAlchemy sessions bound to ``engine``."""

    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        class_=Session,
    )
