"""Database infrastructure - engine, ORM models, and repositories."""

from investment_flow.infrastructure.database.engine import (
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
)
from investment_flow.infrastructure.database.orm_models import AuditLog, Base
from investment_flow.infrastructure.database.repositories import (
    AuditFilter,
    AuditRepository,
)

__all__ = [
    "AuditFilter",
    "AuditLog",
    "AuditRepository",
    "Base",
    "close_db",
    "get_async_session",
    "get_session_factory",
    "init_db",
]
