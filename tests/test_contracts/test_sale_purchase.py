"""Tests for direct purchases and the escrow purchase entry point of TokenSale."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from chain_helpers import (
    ALICE,
    BOB,
    DAY,
    FEE_WALLET,
    ISSUER,
    OUTSIDER,
    PLATFORM,
    STARTING_NATIVE,
    STARTING_USDC,
    UNIT,
    shout,
)

from investment_flow.contracts.chain import Contract
from investment_flow.domain.addresses import NATIVE_ASSET, ZERO_ADDRESS
from investment_flow.domain.enums import SaleStatus
from investment_flow.domain.exceptions import (
    InsufficientAllowanceError,
    InvalidAmountError,
    MintingNotAllowedError,
    NotWhitelistedError,
    PurchaseLimitError,
    SaleNotActiveError,
    SalePausedError,
    UnauthorizedError,
)
from investment_flow.domain.protocols import CallContext

if TYPE_CHECKING:
    from collections.abc import Callable

    from investment_flow.contracts import Chain, FeeManager, FungibleToken, ManualClock, TokenSale


class RevertingFeeManager(Contract):
    """Implements every fee lookup by reverting."""

    contract_type = "fee_manager"

    def get_commission_rate(self, deal_type: str) -> int:
        raise RuntimeError("commission lookup reverted")

    def get_fee_recipient(self, deal_type: str) -> str:
        raise RuntimeError("recipient lookup reverted")

    def get_tenant_commission_rate(self, tenant_id: int, deal_type: str) -> int:
        raise RuntimeError("tenant lookup reverted")

    def get_tenant_fee_recipient(self, tenant_id: int, deal_type: str) -> str:
        raise RuntimeError("tenant lookup reverted")


PLATFORM_CTX = CallContext(sender=PLATFORM)


def buy_native(sale: TokenSale, buyer: str, amount: int) -> int:
    base, fee = sale.quote_purchase(amount)
    return sale.purchase(CallContext(sender=buyer, value=base + fee), NATIVE_ASSET, amount)


class TestNativePurchase:
    def test_purchase_without_fee(
        self, chain: Chain, sale: TokenSale, sale_token: FungibleToken
    ) -> None:
        assert sale.purchase(CallContext(sender=ALICE, value=100), NATIVE_ASSET, 100) == 100

        assert sale_token.balance_of(ALICE) == 100
        assert sale.purchase_of(ALICE) == 100
        assert sale.total_purchases == 100
        assert sale.total_payments(NATIVE_ASSET) == 100
        assert sale.is_participant(ALICE)
        assert chain.native_balance_of(ALICE) == STARTING_NATIVE - 100
        # Payments are forwarded to the owner by default
        assert chain.native_balance_of(ISSUER) == 100
        assert sale.native_balance == 0

    def test_fee_charged_on_top(
        self,
        chain: Chain,
        sale: TokenSale,
        set_fee: Callable[..., None],
    ) -> None:
        set_fee(250)
        assert sale.quote_purchase(100) == (100, 2)

        buy_native(sale, ALICE, 100)

        assert chain.native_balance_of(ALICE) == STARTING_NATIVE - 102
        assert chain.native_balance_of(FEE_WALLET) == 2
        assert chain.native_balance_of(ISSUER) == 100
        assert sale.total_payments(NATIVE_ASSET) == 100

    def test_purchased_event(
        self, chain: Chain, sale: TokenSale, set_fee: Callable[..., None]
    ) -> None:
        set_fee(1000)
        buy_native(sale, ALICE, 50)
        purchased = [e for e in chain.events if e.name == "Purchased"][-1]
        assert purchased.payload == {
            "buyer": ALICE,
            "currency": NATIVE_ASSET,
            "tokens": 50,
            "payment": 50,
            "fee": 5,
            "locked": 0,
            "via_escrow": False,
        }
        fee_paid = [e for e in chain.events if e.name == "FeePaid"][-1]
        assert fee_paid.payload["recipient"] == FEE_WALLET
        assert fee_paid.payload["source"] == "minimal"

    def test_wrong_value_reverts(
        self, chain: Chain, sale: TokenSale, set_fee: Callable[..., None]
    ) -> None:
        set_fee(250)
        with pytest.raises(InvalidAmountError):
            sale.purchase(CallContext(sender=ALICE, value=100), NATIVE_ASSET, 100)
        assert chain.native_balance_of(ALICE) == STARTING_NATIVE
        assert sale.total_purchases == 0

    def test_payment_rounding_to_zero(self, make_sale: Callable[..., TokenSale]) -> None:
        sale = make_sale(price=UNIT // 2)
        with pytest.raises(InvalidAmountError):
            sale.purchase(CallContext(sender=ALICE, value=0), NATIVE_ASSET, 1)

    def test_fractional_price(self, make_sale: Callable[..., TokenSale]) -> None:
        sale = make_sale(price=UNIT // 2)
        assert sale.quote_purchase(10) == (5, 0)
        buy_native(sale, ALICE, 10)
        assert sale.total_payments(NATIVE_ASSET) == 5


class TestTokenPurchase:
    def test_usdc_purchase_with_fee(
        self,
        chain: Chain,
        sale: TokenSale,
        usdc: FungibleToken,
        set_fee: Callable[..., None],
    ) -> None:
        set_fee(250)
        usdc.approve(CallContext(sender=ALICE), sale.address, 102)
        sale.purchase(CallContext(sender=ALICE), usdc.address, 100)

        assert usdc.balance_of(ALICE) == STARTING_USDC - 102
        assert usdc.balance_of(FEE_WALLET) == 2
        assert usdc.balance_of(ISSUER) == 100
        assert usdc.allowance(ALICE, sale.address) == 0
        assert sale.total_payments(usdc.address) == 100

    def test_insufficient_allowance_reverts(self, sale: TokenSale, usdc: FungibleToken) -> None:
        usdc.approve(CallContext(sender=ALICE), sale.address, 10)
        with pytest.raises(InsufficientAllowanceError):
            sale.purchase(CallContext(sender=ALICE), usdc.address, 100)
        assert sale.total_purchases == 0

    def test_native_value_with_token_payment(self, sale: TokenSale, usdc: FungibleToken) -> None:
        usdc.approve(CallContext(sender=ALICE), sale.address, 100)
        with pytest.raises(InvalidAmountError):
            sale.purchase(CallContext(sender=ALICE, value=1), usdc.address, 100)

    def test_vault_mode_holds_payments(
        self, make_sale: Callable[..., TokenSale], usdc: FungibleToken
    ) -> None:
        sale = make_sale(immediate_transfer=False)
        usdc.approve(CallContext(sender=ALICE), sale.address, 40)
        sale.purchase(CallContext(sender=ALICE), usdc.address, 40)

        assert usdc.balance_of(sale.address) == 40
        assert sale.paid_amount(ALICE, usdc.address) == 40
        assert sale.paid_amounts(ALICE) == {usdc.address: 40}


class TestPurchaseGuards:
    def test_user_must_be_whitelisted(self, chain: Chain, sale: TokenSale) -> None:
        chain.mint_native(OUTSIDER, 100)
        with pytest.raises(NotWhitelistedError):
            sale.purchase(CallContext(sender=OUTSIDER, value=10), NATIVE_ASSET, 10)

    def test_currency_must_be_whitelisted(self, sale: TokenSale) -> None:
        sale.remove_payment_currencies(CallContext(sender=ISSUER), [NATIVE_ASSET])
        with pytest.raises(NotWhitelistedError):
            sale.purchase(CallContext(sender=ALICE, value=10), NATIVE_ASSET, 10)

    def test_paused(self, sale: TokenSale) -> None:
        sale.pause(CallContext(sender=ISSUER))
        with pytest.raises(SalePausedError):
            sale.purchase(CallContext(sender=ALICE, value=10), NATIVE_ASSET, 10)
        sale.unpause(CallContext(sender=ISSUER))
        buy_native(sale, ALICE, 10)

    def test_zero_amount(self, sale: TokenSale) -> None:
        with pytest.raises(InvalidAmountError):
            sale.purchase(CallContext(sender=ALICE), NATIVE_ASSET, 0)

    def test_max_purchase_is_cumulative(self, make_sale: Callable[..., TokenSale]) -> None:
        sale = make_sale(max_purchase=50)
        buy_native(sale, ALICE, 30)
        with pytest.raises(PurchaseLimitError):
            buy_native(sale, ALICE, 21)
        buy_native(sale, ALICE, 20)
        assert sale.purchase_of(ALICE) == 50

    def test_min_purchase(self, make_sale: Callable[..., TokenSale]) -> None:
        sale = make_sale(min_purchase=10)
        with pytest.raises(PurchaseLimitError):
            buy_native(sale, ALICE, 5)
        buy_native(sale, ALICE, 10)
        # Later top-ups only need the running total to clear the minimum
        buy_native(sale, ALICE, 1)

    def test_hardcap(self, make_sale: Callable[..., TokenSale]) -> None:
        sale = make_sale(hardcap=150, softcap=100)
        buy_native(sale, ALICE, 100)
        with pytest.raises(PurchaseLimitError):
            buy_native(sale, BOB, 60)
        buy_native(sale, BOB, 50)
        assert sale.state() is SaleStatus.SUCCESSFUL

    def test_after_end(self, clock: ManualClock, sale: TokenSale) -> None:
        clock.advance(DAY)
        with pytest.raises(SaleNotActiveError):
            buy_native(sale, ALICE, 10)

    def test_last_second_is_open(self, clock: ManualClock, sale: TokenSale) -> None:
        clock.advance(DAY - 1)
        buy_native(sale, ALICE, 10)


class TestTokenDelivery:
    def test_inventory_first_then_mint(self, sale: TokenSale, sale_token: FungibleToken) -> None:
        sale_token.mint(CallContext(sender=ISSUER), sale.address, 30)
        buy_native(sale, ALICE, 100)

        assert sale_token.balance_of(ALICE) == 100
        assert sale_token.balance_of(sale.address) == 0
        assert sale_token.total_supply == 100

    def test_inventory_covers_purchase(self, sale: TokenSale, sale_token: FungibleToken) -> None:
        sale_token.mint(CallContext(sender=ISSUER), sale.address, 500)
        buy_native(sale, ALICE, 100)
        assert sale_token.balance_of(sale.address) == 400
        assert sale_token.total_supply == 500

    def test_minting_not_allowed_reverts_everything(
        self, chain: Chain, make_sale: Callable[..., TokenSale]
    ) -> None:
        sale = make_sale(minter=False)
        with pytest.raises(MintingNotAllowedError):
            buy_native(sale, ALICE, 10)
        assert sale.purchase_of(ALICE) == 0
        assert chain.native_balance_of(ALICE) == STARTING_NATIVE

    def test_lockup_split(
        self, make_sale: Callable[..., TokenSale], sale_token: FungibleToken
    ) -> None:
        sale = make_sale(lockup_percent=2500)
        buy_native(sale, ALICE, 100)
        assert sale_token.balance_of(ALICE) == 75
        assert sale.locked_balance_of(ALICE) == 25
        assert sale.purchase_of(ALICE) == 100

    def test_lockup_rounds_in_favour_of_lock(
        self, make_sale: Callable[..., TokenSale], sale_token: FungibleToken
    ) -> None:
        sale = make_sale(lockup_percent=3333)
        buy_native(sale, ALICE, 10)
        assert sale.locked_balance_of(ALICE) == 4
        assert sale_token.balance_of(ALICE) == 6


class TestFeeResolution:
    def test_reverting_fee_manager_means_no_fee(self, chain: Chain, sale: TokenSale) -> None:
        broken = chain.deploy(RevertingFeeManager)
        sale.set_fee_manager(CallContext(sender=ISSUER), broken.address)

        assert sale.quote_purchase(100) == (100, 0)
        sale.purchase(CallContext(sender=ALICE, value=100), NATIVE_ASSET, 100)
        assert sale.purchase_of(ALICE) == 100

    def test_no_fee_manager(self, sale: TokenSale) -> None:
        sale.set_fee_manager(CallContext(sender=ISSUER), ZERO_ADDRESS)
        assert sale.quote_purchase(100) == (100, 0)

    def test_tenant_rate(
        self,
        chain: Chain,
        make_sale: Callable[..., TokenSale],
        fee_manager: FeeManager,
    ) -> None:
        fee_manager.set_tenant_commission(PLATFORM_CTX, 7, "token_sale", 100, FEE_WALLET)
        fee_manager.set_tenant_commission(PLATFORM_CTX, 0, "token_sale", 500, FEE_WALLET)
        sale = make_sale(tenant_id=7)
        assert sale.quote_purchase(1000) == (1000, 10)

    def test_zero_tenant_fallback(
        self,
        make_sale: Callable[..., TokenSale],
        fee_manager: FeeManager,
    ) -> None:
        fee_manager.set_tenant_commission(PLATFORM_CTX, 0, "token_sale", 500, FEE_WALLET)
        sale = make_sale(tenant_id=9)
        assert sale.quote_purchase(1000) == (1000, 50)

    def test_minimal_rate_wins_over_tenant(
        self,
        make_sale: Callable[..., TokenSale],
        fee_manager: FeeManager,
        set_fee: Callable[..., None],
    ) -> None:
        set_fee(200)
        fee_manager.set_tenant_commission(PLATFORM_CTX, 0, "token_sale", 500, FEE_WALLET)
        sale = make_sale(tenant_id=3)
        assert sale.quote_purchase(1000) == (1000, 20)

    def test_deal_type_override(
        self, make_sale: Callable[..., TokenSale], fee_manager: FeeManager
    ) -> None:
        fee_manager.set_commission(PLATFORM_CTX, "fund", 300, FEE_WALLET)
        sale = make_sale(deal_type="fund")
        assert sale.quote_purchase(1000) == (1000, 30)


class TestEscrowEntryPoint:
    def test_rejects_non_escrow_caller(self, chain: Chain, sale: TokenSale) -> None:
        with pytest.raises(UnauthorizedError):
            sale.purchase_with_escrow(
                CallContext(sender=ALICE, value=100), ALICE, 100, NATIVE_ASSET
            )
        assert chain.native_balance_of(ALICE) == STARTING_NATIVE

    def test_rejects_when_fee_manager_has_no_factory(self, chain: Chain, sale: TokenSale) -> None:
        broken = chain.deploy(RevertingFeeManager)
        sale.set_fee_manager(CallContext(sender=ISSUER), broken.address)
        with pytest.raises(UnauthorizedError):
            sale.purchase_with_escrow(CallContext(sender=BOB, value=10), BOB, 10, NATIVE_ASSET)

    def test_escrow_factory_can_be_repointed(
        self, chain: Chain, sale: TokenSale, fee_manager: FeeManager
    ) -> None:
        with pytest.raises(UnauthorizedError):
            fee_manager.set_escrow_factory(CallContext(sender=OUTSIDER), OUTSIDER)

        fee_manager.set_escrow_factory(PLATFORM_CTX, OUTSIDER)

        assert fee_manager.escrow_factory() == OUTSIDER
        with pytest.raises(UnauthorizedError):
            sale.purchase_with_escrow(CallContext(sender=BOB, value=10), BOB, 10, NATIVE_ASSET)
        assert chain.native_balance_of(BOB) == STARTING_NATIVE


class TestAddressCase:
    def test_mixed_case_buyer_shares_one_ledger_entry(self, chain: Chain, sale: TokenSale) -> None:
        sale.purchase(CallContext(sender=shout(ALICE), value=10), NATIVE_ASSET, 10)
        sale.purchase(CallContext(sender=ALICE, value=15), NATIVE_ASSET, 15)

        assert sale.purchase_of(ALICE) == 25
        assert sale.purchase_of(shout(ALICE)) == 25
        assert sale.participants_count == 1
        assert chain.native_balance_of(shout(ALICE)) == STARTING_NATIVE - 25

    def test_mixed_case_currency(
        self, sale: TokenSale, sale_token: FungibleToken, usdc: FungibleToken
    ) -> None:
        usdc.approve(CallContext(sender=ALICE), shout(sale.address), 40)

        sale.purchase(CallContext(sender=ALICE), shout(usdc.address), 40)

        assert sale.total_payments(usdc.address) == 40
        assert sale.all_total_payments() == {usdc.address: 40}
        assert sale_token.balance_of(shout(ALICE)) == 40
