"""Pydantic schemas for the audit log API."""

from __future__ import annotations

import uuid  # noqa: TC003 - needed at runtime by pydantic
from datetime import datetime  # noqa: TC003 - needed at runtime by pydantic

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    """One audit entry as stored (details already redacted)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    actor: str
    action_type: str
    entity_type: str
    entity_id: str | None
    outcome: str
    details: dict | None = None
    tenant_id: str | None = None
    event_index: int | None = None
    created_at: datetime


class AuditLogPage(BaseModel):
    """A page of audit entries plus the total number of matches."""

    items: list[AuditLogResponse]
    total: int = Field(ge=0)
    limit: int
    offset: int
