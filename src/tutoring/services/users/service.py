from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID, uuid4

from src.tutoring.domain.models.user import User, UserRole
from src.tutoring.infra.db import inmemory as repos
from src.tutoring.infra.db.repositories import UserRepository
from src.tutoring.tenancy import get_current_tenant

logger = logging.getLogger(__name__)


class UserDirectoryService:
    """Small user directory used by the scheduling engine for role checks.

    Users live in the user repository and are scoped to the current tenant.
    """

    def __init__(self, repository: Optional[UserRepository] = None) -> None:
        self._repository = repository

    @property
    def repository(self) -> UserRepository:
        return self._repository or repos.user_repository

    def register_user(self, *, email: str, name: str, role: UserRole) -> User:
        user = User(id=uuid4(), email=email, name=name, role=role, tenant_id=get_current_tenant())
        self.repository.save(user)
        logger.info("Registered %s user %s in tenant %s", role.value, user.id, user.tenant_id)
        return user

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self.repository.get(user_id)


user_service = UserDirectoryService()
