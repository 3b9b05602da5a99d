"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from investment_flow.infrastructure.database.orm_models import AuditLog

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class AuditFilter:
    """Optional filters for an audit log query. None means "any"."""

    actor: str | None = None
    action_type: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    outcome: str | None = None
    tenant_id: str | None = None
    since: datetime | None = None
    until: datetime | None = None


class AuditRepository:
    """Data access for the append-only audit log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: AuditLog) -> AuditLog:
        """Insert one entry. This is the ONLY write operation allowed."""
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def append_many(self, entries: list[AuditLog]) -> list[AuditLog]:
        self._session.add_all(entries)
        await self._session.flush()
        return entries

    async def query(
        self,
        filters: AuditFilter,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AuditLog], int]:
        """Return one page of matching entries (newest first) and the total match count."""
        stmt = self._apply_filters(select(AuditLog), filters)
        total = await self._session.scalar(
            self._apply_filters(select(func.count()).select_from(AuditLog), filters)
        )
        result = await self._session.execute(
            stmt.order_by(AuditLog.created_at.desc(), AuditLog.event_index.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), int(total or 0)

    async def get_by_entity(self, entity_type: str, entity_id: str) -> list[AuditLog]:
        """Fetch every entry for one entity in chronological order."""
        result = await self._session.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.asc(), AuditLog.event_index.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    def _apply_filters(stmt: Select, filters: AuditFilter) -> Select:
        if filters.actor is not None:
            stmt = stmt.where(AuditLog.actor == filters.actor)
        if filters.action_type is not None:
            stmt = stmt.where(AuditLog.action_type == filters.action_type)
        if filters.entity_type is not None:
            stmt = stmt.where(AuditLog.entity_type == filters.entity_type)
        if filters.entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == filters.entity_id)
        if filters.outcome is not None:
            stmt = stmt.where(AuditLog.outcome == filters.outcome)
        if filters.tenant_id is not None:
            stmt = stmt.where(AuditLog.tenant_id == filters.tenant_id)
        if filters.since is not None:
            stmt = stmt.where(AuditLog.created_at >= filters.since)
        if filters.until is not None:
            stmt = stmt.where(AuditLog.created_at < filters.until)
        return stmt
