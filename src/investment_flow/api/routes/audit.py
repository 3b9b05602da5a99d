"""Audit log read API.

Routes:
    GET /api/v1/audit-logs  - Filtered, paginated audit entries

Requires a bearer token carrying a tenant; only that tenant's entries are
returned. An X-Tenant-ID header, if sent, is ignored.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from investment_flow.api.deps import get_audit_service, get_tenant_scope
from investment_flow.domain.enums import (  # noqa: TC001 - resolved by FastAPI
    AuditActionType,
    AuditEntityType,
    AuditOutcome,
)
from investment_flow.infrastructure.database.repositories import AuditFilter
from investment_flow.logging_config import get_logger
from investment_flow.schemas.audit import AuditLogPage, AuditLogResponse
from investment_flow.services.audit_service import AuditService

router = APIRouter(prefix="/api/v1/audit-logs", tags=["Audit"])
logger = get_logger(__name__)


@router.get(
    "",
    response_model=AuditLogPage,
    summary="Query the audit log",
)
async def list_audit_logs(
    actor: str | None = Query(default=None),
    action_type: AuditActionType | None = Query(default=None),
    entity_type: AuditEntityType | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    outcome: AuditOutcome | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant_id: str = Depends(get_tenant_scope),
    svc: AuditService = Depends(get_audit_service),
) -> AuditLogPage:
    """Newest entries first."""
    filters = AuditFilter(
        actor=actor,
        action_type=action_type.value if action_type else None,
        entity_type=entity_type.value if entity_type else None,
        entity_id=entity_id,
        outcome=outcome.value if outcome else None,
        tenant_id=tenant_id,
    )
    entries, total = await svc.query(filters, limit=limit, offset=offset)
    logger.debug("audit.queried", total=total, returned=len(entries), tenant_id=tenant_id)
    return AuditLogPage(
        items=[AuditLogResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )
