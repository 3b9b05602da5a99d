"""Sample offering deployed into the served chain when ``CHAIN_SEED=demo``.

The API's chain starts empty; a deployment that wants something to browse
(local development, demos, smoke tests) seeds it with:

    - an escrow factory and a fee manager linked to it
    - a sale token and a native-currency TokenSale that may mint it
    - one direct purchase, one executed escrow and one funded escrow
      still awaiting an admin decision

Account addresses are derived from fixed labels, so they are stable across
restarts.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from investment_flow.config import get_settings
from investment_flow.contracts.factory import EscrowFactory
from investment_flow.contracts.fee_manager import FeeManager
from investment_flow.contracts.sale import TokenSale
from investment_flow.contracts.token import FungibleToken
from investment_flow.domain.addresses import NATIVE_ASSET
from investment_flow.domain.enums import Role
from investment_flow.domain.protocols import CallContext
from investment_flow.logging_config import get_logger
from investment_flow.schemas.sale import PRICE_SCALE, SaleConfig

if TYPE_CHECKING:
    from investment_flow.config import Settings
    from investment_flow.contracts.chain import Chain
    from investment_flow.contracts.escrow import InvestmentEscrow

logger = get_logger(__name__)

DEMO_FUNDING = 1_000_000


def demo_account(label: str) -> str:
    """Stable address for a named demo participant."""
    return "0x" + hashlib.sha256(f"demo:{label}".encode()).hexdigest()[:40]


ISSUER = demo_account("issuer")
PLATFORM = demo_account("platform")
ESCROW_ADMIN = demo_account("escrow-admin")
INVESTORS = (demo_account("investor-1"), demo_account("investor-2"))


@dataclass(frozen=True)
class SeededOffering:
    factory: EscrowFactory
    fee_manager: FeeManager
    token: FungibleToken
    sale: TokenSale
    escrows: tuple[InvestmentEscrow, ...]


def seed_demo_offering(chain: Chain, settings: Settings | None = None) -> SeededOffering:
    """Deploy and exercise a small offering on ``chain``."""
    settings = settings or get_settings()
    platform = CallContext(sender=PLATFORM)
    issuer = CallContext(sender=ISSUER)
    first, second = INVESTORS

    for investor in INVESTORS:
        chain.mint_native(investor, DEMO_FUNDING)

    factory = chain.deploy(EscrowFactory)
    factory.initialize(platform, admins=[ESCROW_ADMIN])
    fee_manager = chain.deploy(FeeManager)
    fee_manager.initialize(platform, escrow_factory=factory.address)

    token = chain.deploy(FungibleToken)
    token.initialize(issuer, name="Demo Fund Share", symbol="DFS", decimals=0)

    sale = chain.deploy(TokenSale)
    sale.initialize(
        issuer,
        token.address,
        SaleConfig(
            price=PRICE_SCALE,
            hardcap=100_000,
            softcap=1_000,
            max_purchase=50_000,
            duration=settings.escrow_expiration_seconds,
        ),
        fee_manager.address,
    )
    token.grant_role(issuer, Role.MINTER.value, sale.address)
    sale.add_payment_currencies(issuer, [NATIVE_ASSET])
    sale.add_to_whitelist(issuer, list(INVESTORS))

    sale.purchase(CallContext(sender=first, value=5_000), NATIVE_ASSET, 5_000)

    executed = factory.create_escrow(CallContext(sender=second), sale.address, NATIVE_ASSET)
    executed.deposit(CallContext(sender=second, value=2_000))
    executed.approve_and_execute(CallContext(sender=ESCROW_ADMIN))

    pending = factory.create_escrow(CallContext(sender=first), sale.address, NATIVE_ASSET)
    pending.deposit(CallContext(sender=first, value=1_000))

    logger.info(
        "chain.seeded",
        sale=sale.address,
        factory=factory.address,
        escrows=[executed.address, pending.address],
        events=len(chain.events),
    )
    return SeededOffering(
        factory=factory,
        fee_manager=fee_manager,
        token=token,
        sale=sale,
        escrows=(executed, pending),
    )
