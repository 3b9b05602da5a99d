#!/usr/bin/env python3
"""Investment Flow - End-to-End Simulation.

Runs five scenarios on an in-process chain driven by a manual clock, then
writes every contract event to the audit log and prints the trail:

    Scenario A: Successful sale
        - softcap 100, hardcap 1000, one day; 150 tokens sold -> SUCCESSFUL
        - issuer withdraws the proceeds

    Scenario B: Failed sale with claim-back
        - same limits in vault mode; 50 tokens sold -> FAILED
        - investor claims exactly 50 back

    Scenario C: Partial approval
        - investor deposits 100 into an escrow
        - admin approves 60 -> tokens for 60, 40 refunded, escrow EXECUTED

    Scenario D: Admin never acts
        - deposit, admin deadline passes, anyone calls refund()
        - investor gets the full deposit back, escrow EXPIRED

    Scenario E: Lockup
        - 50% lockup; a 100-token purchase delivers 50 and locks 50
        - threshold reached + lockup duration elapsed -> unlock the other 50

Usage:
    # With PostgreSQL for the audit log (DATABASE_URL from .env):
    python simulation.py

    # Without a database server (SQLite in-memory):
    python simulation.py --sqlite

    # Run a specific scenario:
    python simulation.py --sqlite --scenario C
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from investment_flow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from investment_flow.contracts import (  # noqa: E402
    Chain,
    EscrowFactory,
    FeeManager,
    FungibleToken,
    ManualClock,
    TokenSale,
)
from investment_flow.domain.addresses import NATIVE_ASSET  # noqa: E402
from investment_flow.domain.enums import AuditEntityType, Role  # noqa: E402
from investment_flow.domain.protocols import CallContext  # noqa: E402
from investment_flow.schemas.sale import SaleConfig  # noqa: E402

DAY = 24 * 60 * 60
UNIT = 10**18

# Module-level state
_sqlite_engine = None
_sqlite_session_factory = None


def addr(tag: str) -> str:
    """Readable fake address, e.g. addr("a1") -> 0xa1a1...a1."""
    return "0x" + (tag * 40)[:40]


ISSUER = addr("1a")
PLATFORM = addr("2b")
FEE_WALLET = addr("3c")
ADMIN = addr("4d")
ALICE = addr("a1")
BOB = addr("b2")


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False) -> None:
    """Initialize database engine and create tables."""
    global _sqlite_engine, _sqlite_session_factory

    if use_sqlite:
        from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

        from investment_flow.infrastructure.database.orm_models import Base

        _sqlite_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        _sqlite_session_factory = async_sessionmaker(
            bind=_sqlite_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized")
    else:
        from investment_flow.infrastructure.database.engine import init_db

        await init_db()


def get_session() -> Any:
    """Get a fresh database session."""
    if _sqlite_session_factory is not None:
        return _sqlite_session_factory()

    from investment_flow.infrastructure.database.engine import get_session_factory

    return get_session_factory()()


async def shutdown_database() -> None:
    """Close database connections."""
    global _sqlite_engine, _sqlite_session_factory

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        _sqlite_session_factory = None
    else:
        from investment_flow.infrastructure.database.engine import close_db

        await close_db()


# ---------------------------------------------------------------------------
# World setup
# ---------------------------------------------------------------------------
@dataclass
class World:
    """A chain with the platform contracts deployed and configured."""

    chain: Chain
    clock: ManualClock
    fees: FeeManager
    factory: EscrowFactory
    token: FungibleToken

    def open_sale(self, fee_bps: int = 0, **overrides: Any) -> TokenSale:
        params: dict[str, Any] = {
            "price": UNIT,
            "hardcap": 1000,
            "softcap": 100,
            "max_purchase": 1000,
            "duration": DAY,
        }
        params.update(overrides)
        if fee_bps:
            self.fees.set_commission(
                CallContext(sender=PLATFORM), "token_sale", fee_bps, FEE_WALLET
            )
        sale = self.chain.deploy(TokenSale)
        issuer = CallContext(sender=ISSUER)
        sale.initialize(issuer, self.token.address, SaleConfig(**params), self.fees.address)
        self.token.grant_role(issuer, Role.MINTER.value, sale.address)
        sale.add_payment_currencies(issuer, [NATIVE_ASSET])
        sale.add_to_whitelist(issuer, [ALICE, BOB])
        return sale


def build_world() -> World:
    clock = ManualClock()
    chain = Chain(clock=clock)
    for account in (ALICE, BOB):
        chain.mint_native(account, 10_000)

    platform = CallContext(sender=PLATFORM)
    factory = chain.deploy(EscrowFactory)
    factory.initialize(platform, admins=[ADMIN], admin_action_window=7 * DAY, expiration=30 * DAY)
    fees = chain.deploy(FeeManager)
    fees.initialize(platform, escrow_factory=factory.address)

    token = chain.deploy(FungibleToken)
    token.initialize(CallContext(sender=ISSUER), name="Harbor Fund Share", symbol="HFS", decimals=0)
    return World(chain=chain, clock=clock, fees=fees, factory=factory, token=token)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------
def section(title: str) -> None:
    print(f"\n{'─' * 70}\n  {title}\n{'─' * 70}")


async def record_and_print_trail(world: World, entity_type: AuditEntityType, address: str) -> None:
    """Persist the chain's events to the audit log and print one contract's trail."""
    from investment_flow.services.audit_service import AuditService

    async with get_session() as session:
        svc = AuditService(session)
        await svc.record_chain_events(world.chain.events)
        await session.commit()
        trail = await svc.entity_trail(entity_type, address)

    print(f"\n  📜 Audit trail for {entity_type} {address[:10]}…")
    for entry in trail:
        print(f"     {entry.created_at:%Y-%m-%d %H:%M}  {entry.action_type:<18} {entry.details}")


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_a_successful_sale() -> None:
    section("SCENARIO A: Successful sale (softcap met, proceeds withdrawn)")
    world = build_world()
    sale = world.open_sale()

    sale.purchase(CallContext(sender=ALICE, value=100), NATIVE_ASSET, 100)
    sale.purchase(CallContext(sender=BOB, value=50), NATIVE_ASSET, 50)
    world.clock.advance(2 * DAY)

    print(f"  total purchases: {sale.total_purchases}   state: {sale.state()}")
    assert str(sale.state()) == "SUCCESSFUL"
    print(f"  issuer native balance: {world.chain.native_balance_of(ISSUER)}")

    await record_and_print_trail(world, AuditEntityType.SALE, sale.address)


async def scenario_b_failed_sale() -> None:
    section("SCENARIO B: Failed sale, vault mode, claim-back")
    world = build_world()
    sale = world.open_sale(immediate_transfer=False)

    before = world.chain.native_balance_of(ALICE)
    sale.purchase(CallContext(sender=ALICE, value=50), NATIVE_ASSET, 50)
    world.clock.advance(2 * DAY)
    print(f"  total purchases: {sale.total_purchases}   state: {sale.state()}")

    refunded = sale.claim_back(CallContext(sender=ALICE), NATIVE_ASSET)
    print(f"  claimed back: {refunded}")
    print(f"  purchase_of(alice)={sale.purchase_of(ALICE)}  locked={sale.locked_balance_of(ALICE)}")
    assert world.chain.native_balance_of(ALICE) == before

    await record_and_print_trail(world, AuditEntityType.SALE, sale.address)


async def scenario_c_partial_approval() -> None:
    section("SCENARIO C: Escrow deposit 100, admin approves 60")
    world = build_world()
    sale = world.open_sale()

    escrow = world.factory.create_escrow(CallContext(sender=ALICE), sale.address, NATIVE_ASSET)
    escrow.deposit(CallContext(sender=ALICE, value=100))
    before = world.chain.native_balance_of(ALICE)

    tokens = escrow.partial_approve_and_execute(CallContext(sender=ADMIN), 60)
    print(f"  tokens bought: {tokens}   alice token balance: {world.token.balance_of(ALICE)}")
    print(f"  refunded to alice: {world.chain.native_balance_of(ALICE) - before}")
    print(f"  escrow status: {escrow.status}")

    await record_and_print_trail(world, AuditEntityType.ESCROW, escrow.address)


async def scenario_d_admin_deadline() -> None:
    section("SCENARIO D: Admin misses the deadline, anyone refunds")
    world = build_world()
    sale = world.open_sale(duration=60 * DAY)

    escrow = world.factory.create_escrow(CallContext(sender=BOB), sale.address, NATIVE_ASSET)
    escrow.deposit(CallContext(sender=BOB, value=250))
    print(f"  can_refund before deadline: {escrow.can_refund()}")

    world.clock.advance(7 * DAY)
    print(f"  can_refund after deadline:  {escrow.can_refund()}")
    escrow.refund(CallContext(sender=ALICE))
    print(f"  bob balance: {world.chain.native_balance_of(BOB)}   escrow status: {escrow.status}")

    await record_and_print_trail(world, AuditEntityType.ESCROW, escrow.address)


async def scenario_e_lockup() -> None:
    section("SCENARIO E: 50% lockup, threshold reached, unlock")
    world = build_world()
    sale = world.open_sale(lockup_percent=5000, lockup_duration=3 * DAY, duration=10 * DAY)

    sale.purchase(CallContext(sender=ALICE, value=100), NATIVE_ASSET, 100)
    print(f"  delivered: {world.token.balance_of(ALICE)}   locked: {sale.locked_balance_of(ALICE)}")

    sale.set_lockup_tvl_reached(CallContext(sender=ISSUER), force=True)
    world.clock.advance(3 * DAY)
    unlocked = sale.unlock(CallContext(sender=ALICE))
    print(f"  unlocked: {unlocked}   alice token balance: {world.token.balance_of(ALICE)}")

    await record_and_print_trail(world, AuditEntityType.SALE, sale.address)


SCENARIOS = {
    "A": scenario_a_successful_sale,
    "B": scenario_b_failed_sale,
    "C": scenario_c_partial_approval,
    "D": scenario_d_admin_deadline,
    "E": scenario_e_lockup,
}


# ===========================================================================
# Main
# ===========================================================================
async def run(selected: list[str], use_sqlite: bool = False) -> None:
    await init_database(use_sqlite=use_sqlite)
    try:
        print("\n" + "=" * 70)
        print("  INVESTMENT FLOW - SIMULATION")
        print(f"  Audit database: {'SQLite (in-memory)' if use_sqlite else 'PostgreSQL'}")
        print("=" * 70)

        for name in selected:
            await SCENARIOS[name]()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Investment Flow Simulation")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default=None,
        help="Run a specific scenario (A-E). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory for the audit log (no database server needed).",
    )
    args = parser.parse_args()

    chosen = [args.scenario] if args.scenario else sorted(SCENARIOS)
    asyncio.run(run(chosen, use_sqlite=args.sqlite))
