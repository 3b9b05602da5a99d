"""Audit Service - append-only record of what happened to escrows and sales.

Coordinates between:
    - Redaction (services/redaction.py), applied before anything is stored
    - AuditRepository (data access)
    - The chain event log, which record_chain_events translates into entries

Audit writes share the caller's session, so a failed write fails the
surrounding unit of work instead of silently dropping the entry.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from investment_flow.domain.addresses import ZERO_ADDRESS
from investment_flow.domain.enums import AuditActionType, AuditEntityType, AuditOutcome
from investment_flow.infrastructure.database.orm_models import AuditLog
from investment_flow.infrastructure.database.repositories import (
    AuditFilter,
    AuditRepository,
)
from investment_flow.logging_config import get_logger
from investment_flow.services.redaction import redact_details

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from investment_flow.contracts.chain import ChainEvent

logger = get_logger(__name__)

SYSTEM_ACTOR = "SYSTEM"

# (contract_type, event name) -> action recorded in the audit log
EVENT_ACTIONS: dict[tuple[str, str], AuditActionType] = {
    ("escrow_factory", "EscrowCreated"): AuditActionType.ESCROW_CREATE,
    ("escrow_factory", "AdminAdded"): AuditActionType.SETTINGS_CHANGE,
    ("escrow_factory", "AdminRemoved"): AuditActionType.SETTINGS_CHANGE,
    ("escrow", "Deposited"): AuditActionType.DEPOSIT,
    ("escrow", "Approved"): AuditActionType.APPROVE,
    ("escrow", "PartiallyApproved"): AuditActionType.PARTIAL_APPROVE,
    ("escrow", "Rejected"): AuditActionType.REJECT,
    ("escrow", "Refunded"): AuditActionType.REFUND,
    ("escrow", "Executed"): AuditActionType.PURCHASE,
    ("escrow", "EmergencyWithdrawn"): AuditActionType.EMERGENCY_WITHDRAW,
    ("sale", "SaleInitialized"): AuditActionType.SETTINGS_CHANGE,
    ("sale", "Purchased"): AuditActionType.PURCHASE,
    ("sale", "Unlocked"): AuditActionType.UNLOCK,
    ("sale", "ClaimedBack"): AuditActionType.CLAIM_BACK,
    ("sale", "FundsWithdrawn"): AuditActionType.WITHDRAW,
    ("sale", "WhitelistAdded"): AuditActionType.WHITELIST_ADD,
    ("sale", "WhitelistRemoved"): AuditActionType.WHITELIST_REMOVE,
    ("sale", "CurrencyWhitelistAdded"): AuditActionType.WHITELIST_ADD,
    ("sale", "CurrencyWhitelistRemoved"): AuditActionType.WHITELIST_REMOVE,
    ("sale", "Paused"): AuditActionType.PAUSE,
    ("sale", "Unpaused"): AuditActionType.UNPAUSE,
    ("sale", "LockupTVLReached"): AuditActionType.SETTINGS_CHANGE,
    ("sale", "FeeManagerChanged"): AuditActionType.SETTINGS_CHANGE,
    ("fee_manager", "CommissionSet"): AuditActionType.SETTINGS_CHANGE,
    ("fee_manager", "TenantCommissionSet"): AuditActionType.SETTINGS_CHANGE,
    ("fee_manager", "EscrowFactorySet"): AuditActionType.SETTINGS_CHANGE,
    ("token", "RoleGranted"): AuditActionType.SETTINGS_CHANGE,
    ("token", "RoleRevoked"): AuditActionType.SETTINGS_CHANGE,
}

# Payload keys naming who acted, most specific first
ACTOR_KEYS = ("admin", "by", "caller", "buyer", "investor", "account", "sender")


def action_for(evt: ChainEvent) -> AuditActionType | None:
    """Map a chain event to an audit action, or None if it is not audited."""
    if evt.contract_type == "token" and evt.name == "Transfer":
        # Only mints are audited; ordinary transfers are covered by the sale events.
        if evt.payload.get("sender") == ZERO_ADDRESS:
            return AuditActionType.TOKEN_MINT
        return None
    return EVENT_ACTIONS.get((evt.contract_type, evt.name))


def actor_for(evt: ChainEvent) -> str:
    for key in ACTOR_KEYS:
        value = evt.payload.get(key)
        if isinstance(value, str) and value:
            return value
    return SYSTEM_ACTOR


class AuditService:
    """Writes and reads the audit log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = AuditRepository(session)

    async def log(
        self,
        action_type: AuditActionType,
        entity_type: AuditEntityType,
        entity_id: str | None = None,
        actor: str = SYSTEM_ACTOR,
        details: Mapping[str, Any] | None = None,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        tenant_id: str | None = None,
        event_index: int | None = None,
        created_at: datetime | None = None,
    ) -> AuditLog:
        """Append one audit entry with its details redacted."""
        entry = AuditLog(
            actor=actor,
            action_type=AuditActionType(action_type).value,
            entity_type=AuditEntityType(entity_type).value,
            entity_id=entity_id,
            outcome=AuditOutcome(outcome).value,
            details=redact_details(details),
            tenant_id=tenant_id,
            event_index=event_index,
            created_at=created_at or datetime.now(UTC),
        )
        entry = await self._repo.append(entry)
        logger.info(
            "audit.logged",
            audit_id=str(entry.id),
            action_type=entry.action_type,
            entity_type=entry.entity_type,
            entity_id=entity_id,
            outcome=entry.outcome,
        )
        return entry

    async def record_chain_events(
        self,
        events: Iterable[ChainEvent],
        tenant_id: str | None = None,
    ) -> list[AuditLog]:
        """Translate contract events into audit entries, skipping unaudited ones."""
        entries = []
        skipped = 0
        for evt in events:
            action = action_for(evt)
            if action is None:
                skipped += 1
                continue
            entries.append(
                AuditLog(
                    actor=actor_for(evt),
                    action_type=action.value,
                    entity_type=AuditEntityType(evt.contract_type).value,
                    entity_id=evt.contract,
                    outcome=AuditOutcome.SUCCESS.value,
                    details=redact_details({"event": evt.name, **evt.payload}),
                    tenant_id=tenant_id,
                    event_index=evt.index,
                    created_at=datetime.fromtimestamp(evt.timestamp, UTC),
                )
            )
        if entries:
            await self._repo.append_many(entries)
        logger.info("audit.chain_events_recorded", recorded=len(entries), skipped=skipped)
        return entries

    async def query(
        self,
        filters: AuditFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AuditLog], int]:
        """Return a page of entries (newest first) and the total number of matches."""
        return await self._repo.query(filters or AuditFilter(), limit=limit, offset=offset)

    async def entity_trail(
        self,
        entity_type: AuditEntityType,
        entity_id: str,
    ) -> list[AuditLog]:
        """Full chronological history of one contract."""
        return await self._repo.get_by_entity(AuditEntityType(entity_type).value, entity_id)
