"""Tests for the audit service against an in-memory SQLite database."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from chain_helpers import ADMIN, ALICE, ISSUER, START
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from investment_flow.contracts.chain import ChainEvent
from investment_flow.domain.addresses import NATIVE_ASSET, ZERO_ADDRESS
from investment_flow.domain.enums import AuditActionType, AuditEntityType, AuditOutcome
from investment_flow.domain.protocols import CallContext
from investment_flow.infrastructure.database.orm_models import Base
from investment_flow.infrastructure.database.repositories import AuditFilter
from investment_flow.services.audit_service import SYSTEM_ACTOR, AuditService, action_for
from investment_flow.services.redaction import REDACTED

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from investment_flow.contracts import Chain, EscrowFactory, TokenSale


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db_session:
        yield db_session
    await engine.dispose()


@pytest.fixture
def service(session: AsyncSession) -> AuditService:
    return AuditService(session)


def make_event(
    name: str,
    contract_type: str = "escrow",
    index: int = 0,
    timestamp: int = START,
    **payload: object,
) -> ChainEvent:
    return ChainEvent(
        index=index,
        contract="0x" + "e5" * 20,
        contract_type=contract_type,
        name=name,
        payload=dict(payload),
        timestamp=timestamp,
    )


class TestActionMapping:
    def test_known_event(self) -> None:
        assert action_for(make_event("Deposited")) is AuditActionType.DEPOSIT

    def test_unknown_event_is_skipped(self) -> None:
        assert action_for(make_event("Approval", contract_type="token")) is None

    def test_only_mints_are_audited(self) -> None:
        mint = make_event("Transfer", contract_type="token", sender=ZERO_ADDRESS, to=ALICE)
        transfer = make_event("Transfer", contract_type="token", sender=ALICE, to=ISSUER)
        assert action_for(mint) is AuditActionType.TOKEN_MINT
        assert action_for(transfer) is None


class TestLog:
    @pytest.mark.asyncio
    async def test_log_redacts_details(self, service: AuditService) -> None:
        entry = await service.log(
            AuditActionType.SETTINGS_CHANGE,
            AuditEntityType.SALE,
            entity_id="0x" + "5a" * 20,
            actor=ISSUER,
            details={"api_key": "sk-123", "note": "rotated"},
        )
        assert entry.id is not None
        assert entry.details == {"api_key": REDACTED, "note": "rotated"}
        assert entry.outcome == "success"

    @pytest.mark.asyncio
    async def test_defaults(self, service: AuditService) -> None:
        entry = await service.log(AuditActionType.PAUSE, AuditEntityType.SALE)
        assert entry.actor == SYSTEM_ACTOR
        assert entry.details is None
        assert entry.tenant_id is None

    @pytest.mark.asyncio
    async def test_rejects_unknown_action(self, service: AuditService) -> None:
        with pytest.raises(ValueError):
            await service.log("teleport", AuditEntityType.SALE)  # type: ignore[arg-type]


class TestRecordChainEvents:
    @pytest.mark.asyncio
    async def test_records_audited_events(self, service: AuditService) -> None:
        events = [
            make_event("Deposited", index=0, investor=ALICE, amount=100),
            make_event("Approval", contract_type="token", index=1, owner=ALICE),
            make_event("Approved", index=2, admin=ADMIN, amount=100),
        ]
        entries = await service.record_chain_events(events, tenant_id="acme")

        assert [e.action_type for e in entries] == ["deposit", "approve"]
        assert entries[0].actor == ALICE
        assert entries[1].actor == ADMIN
        assert entries[0].details == {"event": "Deposited", "investor": ALICE, "amount": 100}
        assert entries[0].tenant_id == "acme"
        assert entries[0].event_index == 0
        assert entries[0].created_at == datetime.fromtimestamp(START, UTC)

    @pytest.mark.asyncio
    async def test_actor_defaults_to_system(self, service: AuditService) -> None:
        entries = await service.record_chain_events(
            [make_event("LockupTVLReached", contract_type="sale", total_purchases=10)]
        )
        assert entries[0].actor == SYSTEM_ACTOR

    @pytest.mark.asyncio
    async def test_records_a_real_escrow_flow(
        self,
        service: AuditService,
        chain: Chain,
        factory: EscrowFactory,
        sale: TokenSale,
    ) -> None:
        start = len(chain.events)
        escrow = factory.create_escrow(CallContext(sender=ALICE), sale.address, NATIVE_ASSET)
        escrow.deposit(CallContext(sender=ALICE, value=100))
        escrow.approve_and_execute(CallContext(sender=ADMIN))

        await service.record_chain_events(chain.events_since(start))
        trail = await service.entity_trail(AuditEntityType.ESCROW, escrow.address)

        assert [e.action_type for e in trail] == ["deposit", "approve", "purchase"]
        assert trail[1].actor == ADMIN


class TestQuery:
    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, service: AuditService) -> None:
        for i in range(5):
            await service.log(
                AuditActionType.PURCHASE,
                AuditEntityType.SALE,
                entity_id="sale-1",
                actor=ALICE,
                tenant_id="acme" if i % 2 == 0 else "globex",
                created_at=datetime.fromtimestamp(START + i, UTC),
            )
        await service.log(
            AuditActionType.PAUSE,
            AuditEntityType.SALE,
            entity_id="sale-1",
            actor=ISSUER,
            outcome=AuditOutcome.FAILURE,
            created_at=datetime.fromtimestamp(START + 10, UTC),
        )

        entries, total = await service.query(limit=2)
        assert total == 6
        assert len(entries) == 2
        assert entries[0].action_type == "pause"

        entries, total = await service.query(AuditFilter(tenant_id="acme"))
        assert total == 3

        entries, total = await service.query(AuditFilter(actor=ALICE), limit=2, offset=4)
        assert total == 5
        assert len(entries) == 1

        entries, total = await service.query(AuditFilter(outcome="failure"))
        assert [e.actor for e in entries] == [ISSUER]

    @pytest.mark.asyncio
    async def test_time_window(self, service: AuditService) -> None:
        for offset in (0, 60, 120):
            await service.log(
                AuditActionType.DEPOSIT,
                AuditEntityType.ESCROW,
                entity_id="escrow-1",
                created_at=datetime.fromtimestamp(START + offset, UTC),
            )
        entries, total = await service.query(
            AuditFilter(
                since=datetime.fromtimestamp(START + 60, UTC),
                until=datetime.fromtimestamp(START + 120, UTC),
            )
        )
        assert total == 1

    @pytest.mark.asyncio
    async def test_entity_trail_is_chronological(self, service: AuditService) -> None:
        for offset, action in ((30, AuditActionType.APPROVE), (0, AuditActionType.DEPOSIT)):
            await service.log(
                action,
                AuditEntityType.ESCROW,
                entity_id="escrow-9",
                created_at=datetime.fromtimestamp(START + offset, UTC),
            )
        trail = await service.entity_trail(AuditEntityType.ESCROW, "escrow-9")
        assert [e.action_type for e in trail] == ["deposit", "approve"]
