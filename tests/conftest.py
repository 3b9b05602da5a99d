"""Shared test fixtures for the investment flow test suite.

Provides:
    - A chain on a manual clock with funded investor accounts
    - The platform contracts (escrow factory, fee manager)
    - A sale token and a USDC-like payment token
    - A make_sale factory that deploys and configures a TokenSale
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from chain_helpers import (
    ADMIN,
    DAY,
    FEE_WALLET,
    INVESTORS,
    ISSUER,
    PLATFORM,
    START,
    STARTING_NATIVE,
    STARTING_USDC,
    sale_config,
)

from investment_flow.contracts import (
    Chain,
    EscrowFactory,
    FeeManager,
    FungibleToken,
    ManualClock,
    TokenSale,
)
from investment_flow.domain.addresses import NATIVE_ASSET
from investment_flow.domain.enums import Role
from investment_flow.domain.protocols import CallContext

if TYPE_CHECKING:
    from collections.abc import Callable

# ---------------------------------------------------------------------------
# Chain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START)


@pytest.fixture
def chain(clock: ManualClock) -> Chain:
    """A chain whose investors each hold STARTING_NATIVE of the native asset."""
    chain = Chain(clock=clock)
    for investor in INVESTORS:
        chain.mint_native(investor, STARTING_NATIVE)
    return chain


# ---------------------------------------------------------------------------
# Platform Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def factory(chain: Chain) -> EscrowFactory:
    factory = chain.deploy(EscrowFactory)
    factory.initialize(
        CallContext(sender=PLATFORM),
        admins=[ADMIN],
        admin_action_window=7 * DAY,
        expiration=30 * DAY,
    )
    return factory


@pytest.fixture
def fee_manager(chain: Chain, factory: EscrowFactory) -> FeeManager:
    fees = chain.deploy(FeeManager)
    fees.initialize(CallContext(sender=PLATFORM), escrow_factory=factory.address)
    return fees


@pytest.fixture
def set_fee(fee_manager: FeeManager) -> Callable[[int], None]:
    """Set the platform commission for the default deal type."""

    def _set(rate_bps: int, recipient: str = FEE_WALLET) -> None:
        fee_manager.set_commission(CallContext(sender=PLATFORM), "token_sale", rate_bps, recipient)

    return _set


# ---------------------------------------------------------------------------
# Token Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sale_token(chain: Chain) -> FungibleToken:
    token = chain.deploy(FungibleToken)
    token.initialize(CallContext(sender=ISSUER), name="Harbor Fund Share", symbol="HFS", decimals=0)
    return token


@pytest.fixture
def usdc(chain: Chain) -> FungibleToken:
    """A payment token that insists allowances are reset to zero before changes."""
    token = chain.deploy(FungibleToken)
    token.initialize(
        CallContext(sender=PLATFORM),
        name="USD Coin",
        symbol="USDC",
        decimals=6,
        zero_reset_approvals=True,
    )
    for investor in INVESTORS:
        token.mint(CallContext(sender=PLATFORM), investor, STARTING_USDC)
    return token


# ---------------------------------------------------------------------------
# Sale Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_sale(
    chain: Chain,
    sale_token: FungibleToken,
    fee_manager: FeeManager,
    usdc: FungibleToken,
) -> Callable[..., TokenSale]:
    """Deploy a sale that may mint, accepts native and USDC, and whitelists all investors."""

    def _make(minter: bool = True, **overrides: Any) -> TokenSale:
        issuer = CallContext(sender=ISSUER)
        sale = chain.deploy(TokenSale)
        sale.initialize(issuer, sale_token.address, sale_config(**overrides), fee_manager.address)
        if minter:
            sale_token.grant_role(issuer, Role.MINTER.value, sale.address)
        sale.add_payment_currencies(issuer, [NATIVE_ASSET, usdc.address])
        sale.add_to_whitelist(issuer, list(INVESTORS))
        return sale

    return _make


@pytest.fixture
def sale(make_sale: Callable[..., TokenSale]) -> TokenSale:
    return make_sale()
