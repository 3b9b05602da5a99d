"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the audit service, the shared chain and the authenticated caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer  # noqa: TC002
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002 - resolved by FastAPI

from investment_flow.contracts.chain import Chain
from investment_flow.domain.exceptions import AuthenticationError, UnauthorizedError
from investment_flow.infrastructure.chain_registry import get_chain
from investment_flow.infrastructure.database.engine import get_async_session
from investment_flow.services.audit_service import AuditService
from investment_flow.services.auth_service import (  # noqa: TC001 - resolved by FastAPI
    Principal,
    verify_access_token,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

# auto_error=False so a missing header surfaces as our own 401 body
_bearer = HTTPBearer(auto_error=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


async def get_audit_service(
    session: AsyncSession = Depends(get_db_session),
) -> AuditService:
    """Provide an AuditService bound to the current session."""
    return AuditService(session)


def get_chain_dep() -> Chain:
    """Provide the shared chain."""
    return get_chain()


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Principal:
    """Verify the bearer token and return the caller it was issued to."""
    if credentials is None:
        raise AuthenticationError("Missing bearer token", code="NO_TOKEN")
    return verify_access_token(credentials.credentials)


def get_tenant_scope(principal: Principal = Depends(get_current_principal)) -> str:
    """Tenant the caller may read; tokens without one are refused."""
    if principal.tenant_id is None:
        raise UnauthorizedError(principal.subject, "read the audit log without a tenant")
    return principal.tenant_id
