from __future__ import annotations

from typing import Optional
from uuid import UUID

from src.tutoring.domain.models.user import User
from src.tutoring.infra.db.models import UserORM
from src.tutoring.infra.db.repositories import UserRepository
from src.tutoring.infra.db.session import SessionFactory
from src.tutoring.tenancy import get_current_tenant


class SqlUserRepository(UserRepository):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, user_id: UUID) -> Optional[User]:
        db = self._session_factory()
        try:
            orm = db.get(UserORM, user_id)
            if orm is None:
                return None
            if orm.tenant_id != get_current_tenant():
                return None
            return orm.to_domain()
        finally:
            db.close()

    def save(self, user: User) -> None:
        db = self._session_factory()
        try:
            existing = db.get(UserORM, user.id)
            if existing is None:
                db.add(UserORM.from_domain(user))
            else:
                existing.email = user.email
                existing.name = user.name
                existing.role = user.role.value
                existing.tenant_id = user.tenant_id
            db.commit()
        finally:
            db.close()
