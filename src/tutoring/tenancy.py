from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from fastapi import Header


DEFAULT_TENANT = "default"

# Marketplace (tenant) that the in-flight request operates on. Single-tenant
# clients never send X-Tenant-ID and land on the "default" marketplace.
_current_tenant: ContextVar[str] = ContextVar("current_tenant", default=DEFAULT_TENANT)


def get_current_tenant() -> str:
    """Return the tenant identifier for the current context.

    Set per request by :func:`tenant_dependency`; direct service calls outside
    a request (scripts, tests) see the default tenant unless wrapped in
    :func:`use_tenant`.
    """

    return _current_tenant.get()


@contextmanager
def use_tenant(tenant_id: str) -> Iterator[str]:
    """Temporarily switch the tenant context for code running outside a request."""

    token = _current_tenant.set(tenant_id)
    try:
        yield tenant_id
    finally:
        _current_tenant.reset(token)


async def tenant_dependency(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
) -> str:
    """FastAPI dependency that pins the tenant for the rest of the request."""

    tenant_id = (x_tenant_id or "").strip() or DEFAULT_TENANT
    _current_tenant.set(tenant_id)
    return tenant_id
