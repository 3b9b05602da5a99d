"""Token sale contract.

Tracks cumulative purchases against caps and whitelists, prices purchases,
charges the platform fee, distributes tokens (optionally split into unlocked
and locked parts) and, when the offering fails in vault mode, lets investors
claim their payments back.

Two purchase paths share one accounting core:
    purchase()             direct buyer, pays base + fee on top
    purchase_with_escrow() certified escrow, fee comes out of a fixed payment

Status is never stored. state() recomputes it from the ledger and the clock
on every read:
    total >= hardcap                 -> SUCCESSFUL
    now < created_at + duration      -> ACTIVE
    total >= softcap                 -> SUCCESSFUL
    otherwise                        -> FAILED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from investment_flow.config import get_settings
from investment_flow.contracts.access import OwnerAuthorizer, require_capability
from investment_flow.contracts.chain import (
    Contract,
    ContractStorage,
    entrypoint,
    non_reentrant,
)
from investment_flow.domain.addresses import (
    NATIVE_ASSET,
    ZERO_ADDRESS,
    is_native,
    normalize_address,
    require_address,
)
from investment_flow.domain.enums import Capability, Role, SaleStatus
from investment_flow.domain.exceptions import (
    BatchTooLargeError,
    ContractNotFoundError,
    FeeExceedsPaymentError,
    InvalidAmountError,
    LockupActiveError,
    MintingNotAllowedError,
    NotInitializedError,
    NothingToClaimError,
    NothingToUnlockError,
    NotWhitelistedError,
    PreconditionError,
    PurchaseLimitError,
    SaleNotActiveError,
    SalePausedError,
    UnauthorizedError,
)
from investment_flow.domain.fees import BASIS_POINTS, NO_FEE, FeeQuote, FeeResolver
from investment_flow.domain.protocols import EscrowRegistry, TokenLedger
from investment_flow.domain.results import try_call
from investment_flow.logging_config import get_logger
from investment_flow.schemas.sale import PRICE_SCALE, SaleConfig

if TYPE_CHECKING:
    from collections.abc import Iterable

    from investment_flow.contracts.chain import Chain
    from investment_flow.domain.protocols import Authorizer, CallContext

logger = get_logger(__name__)


class SaleInfo(NamedTuple):
    """General sale information."""

    status: SaleStatus
    token: str
    owner: str
    price: int
    hardcap: int
    softcap: int
    total_purchases: int
    participants_count: int
    paused: bool
    immediate_transfer: bool
    lockup_percent: int
    lockup_tvl_reached: bool
    unlock_available: bool
    reserved_tokens: int
    created_at: int
    ends_at: int


@dataclass
class SaleStorage(ContractStorage):
    owner: str = ZERO_ADDRESS
    token: str = ZERO_ADDRESS
    fee_manager: str = ZERO_ADDRESS
    config: SaleConfig | None = None
    deal_type: str = ""
    max_batch: int = 100
    created_at: int = 0
    paused: bool = False
    lockup_tvl_reached: bool = False

    # Ledger
    total_purchases: int = 0
    purchase_of: dict[str, int] = field(default_factory=dict)
    locked_balance_of: dict[str, int] = field(default_factory=dict)
    total_payments: dict[str, int] = field(default_factory=dict)
    paid_amount: dict[str, dict[str, int]] = field(default_factory=dict)
    participants: set[str] = field(default_factory=set)

    # Whitelists
    whitelist: set[str] = field(default_factory=set)
    currency_whitelist: set[str] = field(default_factory=set)


class TokenSale(Contract):
    """A crowdsale for one offering.

    Usage:
        sale = chain.deploy(TokenSale)
        sale.initialize(CallContext(sender=issuer), token=token.address,
                        config=SaleConfig(...), fee_manager=fees.address)
        sale.add_payment_currencies(CallContext(sender=issuer), [NATIVE_ASSET])
        sale.add_to_whitelist(CallContext(sender=issuer), [investor])
        sale.purchase(CallContext(sender=investor, value=cost), NATIVE_ASSET, 100)
    """

    contract_type = "sale"
    storage_class = SaleStorage
    _storage: SaleStorage

    def __init__(self, chain: Chain, address: str) -> None:
        super().__init__(chain, address)
        self.authorizer: Authorizer | None = None
        self.fee_resolver = FeeResolver()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    @entrypoint()
    def initialize(
        self,
        ctx: CallContext,
        token: str,
        config: SaleConfig,
        fee_manager: str = ZERO_ADDRESS,
        owner: str | None = None,
        authorizer: Authorizer | None = None,
        max_whitelist_batch: int | None = None,
    ) -> None:
        """Configure the sale. Callable exactly once."""
        self._initialize_once()
        settings = get_settings()

        token_contract = self.chain.find_contract(require_address(token))
        if not isinstance(token_contract, TokenLedger):
            raise ContractNotFoundError(token)

        s = self._storage
        s.owner = require_address(owner or ctx.sender)
        s.token = token_contract.address
        s.fee_manager = require_address(fee_manager, allow_zero=True)
        s.config = config
        s.deal_type = config.deal_type or settings.fee_deal_type
        s.max_batch = max_whitelist_batch or settings.sale_max_whitelist_batch
        s.created_at = self.chain.now
        self.authorizer = authorizer or OwnerAuthorizer(s.owner)

        self._emit(
            "SaleInitialized",
            owner=s.owner,
            sale_token=token,
            hardcap=config.hardcap,
            softcap=config.softcap,
            price=config.price,
            immediate_transfer=config.immediate_transfer,
        )
        logger.info(
            "sale.initialized",
            sale=self.address,
            owner=s.owner,
            hardcap=config.hardcap,
            softcap=config.softcap,
            duration=config.duration,
        )

    # ------------------------------------------------------------------
    # Status & views
    # ------------------------------------------------------------------

    @property
    def config(self) -> SaleConfig:
        if self._storage.config is None:
            raise NotInitializedError(self.address)
        return self._storage.config

    @property
    def owner(self) -> str:
        return self._storage.owner

    @property
    def token(self) -> str:
        return self._storage.token

    @property
    def fee_manager(self) -> str:
        return self._storage.fee_manager

    @property
    def total_purchases(self) -> int:
        return self._storage.total_purchases

    @property
    def paused(self) -> bool:
        return self._storage.paused

    @property
    def lockup_tvl_reached(self) -> bool:
        return self._storage.lockup_tvl_reached

    @property
    def created_at(self) -> int:
        return self._storage.created_at

    @property
    def ends_at(self) -> int:
        return self._storage.created_at + self.config.duration

    def state(self) -> SaleStatus:
        """Current sale status, derived from the ledger and the clock."""
        config = self.config
        total = self._storage.total_purchases
        if total >= config.hardcap:
            return SaleStatus.SUCCESSFUL
        if self.chain.now < self.ends_at:
            return SaleStatus.ACTIVE
        if total >= config.softcap:
            return SaleStatus.SUCCESSFUL
        return SaleStatus.FAILED

    def purchase_of(self, account: str) -> int:
        return self._storage.purchase_of.get(normalize_address(account), 0)

    def locked_balance_of(self, account: str) -> int:
        return self._storage.locked_balance_of.get(normalize_address(account), 0)

    def paid_amount(self, account: str, currency: str) -> int:
        paid = self._storage.paid_amount.get(normalize_address(account), {})
        return paid.get(normalize_address(currency), 0)

    def paid_amounts(self, account: str) -> dict[str, int]:
        paid = self._storage.paid_amount.get(normalize_address(account), {})
        return {c: v for c, v in paid.items() if v}

    def total_payments(self, currency: str) -> int:
        return self._storage.total_payments.get(normalize_address(currency), 0)

    def all_total_payments(self) -> dict[str, int]:
        return dict(self._storage.total_payments)

    def is_participant(self, account: str) -> bool:
        return normalize_address(account) in self._storage.participants

    @property
    def participants_count(self) -> int:
        return len(self._storage.participants)

    def is_whitelisted(self, account: str) -> bool:
        return normalize_address(account) in self._storage.whitelist

    def is_currency_whitelisted(self, currency: str) -> bool:
        return normalize_address(currency) in self._storage.currency_whitelist

    def whitelisted_users(self) -> list[str]:
        return sorted(self._storage.whitelist)

    def whitelisted_currencies(self) -> list[str]:
        return sorted(self._storage.currency_whitelist)

    def reserved_tokens(self) -> int:
        return self.config.hardcap * self.config.reserved_percent // BASIS_POINTS

    def is_unlock_available(self) -> bool:
        return (
            self._storage.lockup_tvl_reached
            and self.chain.now >= self._storage.created_at + self.config.lockup_duration
        )

    def quote_purchase(self, amount: int) -> tuple[int, int]:
        """Return (base payment, fee) a direct buyer owes for ``amount`` tokens."""
        base = amount * self.config.price // PRICE_SCALE
        return base, self._resolve_fee().fee_for(base)

    def sale_info(self) -> SaleInfo:
        config = self.config
        s = self._storage
        return SaleInfo(
            status=self.state(),
            token=s.token,
            owner=s.owner,
            price=config.price,
            hardcap=config.hardcap,
            softcap=config.softcap,
            total_purchases=s.total_purchases,
            participants_count=len(s.participants),
            paused=s.paused,
            immediate_transfer=config.immediate_transfer,
            lockup_percent=config.lockup_percent,
            lockup_tvl_reached=s.lockup_tvl_reached,
            unlock_available=self.is_unlock_available(),
            reserved_tokens=self.reserved_tokens(),
            created_at=s.created_at,
            ends_at=self.ends_at,
        )

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    @entrypoint(payable=True)
    @non_reentrant
    def purchase(self, ctx: CallContext, currency: str, amount: int) -> int:
        """Buy ``amount`` tokens directly, paying base price plus fee in ``currency``."""
        currency = normalize_address(currency)
        buyer = ctx.sender
        self._require_open()
        if not self.is_whitelisted(buyer):
            raise NotWhitelistedError("User", buyer)
        self._require_currency(currency)
        if amount <= 0:
            raise InvalidAmountError("Token amount must be positive")

        base = amount * self.config.price // PRICE_SCALE
        if base <= 0:
            raise InvalidAmountError(f"Purchase of {amount} tokens rounds to a zero payment")
        quote = self._resolve_fee()
        fee = quote.fee_for(base)
        total = base + fee

        self._check_limits(buyer, amount)
        self._check_payment_value(ctx, currency, total)

        # Effects
        locked = self._record_purchase(buyer, currency, amount, base)

        # Interactions
        self._collect(currency, buyer, total)
        self._settle(currency, base, fee, quote)
        self._deliver(buyer, amount - locked)

        self._emit(
            "Purchased",
            buyer=buyer,
            currency=currency,
            tokens=amount,
            payment=base,
            fee=fee,
            locked=locked,
            via_escrow=False,
        )
        logger.info(
            "sale.purchased",
            sale=self.address,
            buyer=buyer,
            tokens=amount,
            payment=base,
            fee=fee,
            locked=locked,
        )
        return amount

    @entrypoint(payable=True)
    @non_reentrant
    def purchase_with_escrow(
        self,
        ctx: CallContext,
        investor: str,
        payment_amount: int,
        payment_token: str,
    ) -> int:
        """Buy on behalf of ``investor`` with a fixed gross payment from a certified escrow.

        Returns the number of tokens sold.
        """
        escrow = ctx.sender
        self._require_open()
        registry = self._escrow_registry()
        if registry is None or not registry.is_valid_escrow(escrow):
            raise UnauthorizedError(escrow, "purchase with escrow")
        investor = require_address(investor)
        payment_token = normalize_address(payment_token)
        self._require_currency(payment_token)
        if payment_amount <= 0:
            raise InvalidAmountError("Payment amount must be positive")

        quote = self._resolve_fee()
        fee = quote.fee_for(payment_amount)
        net = payment_amount - fee
        if net <= 0:
            raise FeeExceedsPaymentError(payment_amount, fee)
        tokens = net * PRICE_SCALE // self.config.price
        if tokens <= 0:
            raise InvalidAmountError(f"Payment of {payment_amount} buys zero tokens")

        self._check_limits(investor, tokens)
        self._check_payment_value(ctx, payment_token, payment_amount)

        # Effects
        locked = self._record_purchase(investor, payment_token, tokens, net)

        # Interactions
        self._collect(payment_token, escrow, payment_amount)
        self._settle(payment_token, net, fee, quote)
        self._deliver(investor, tokens - locked)

        self._emit(
            "Purchased",
            buyer=investor,
            currency=payment_token,
            tokens=tokens,
            payment=net,
            fee=fee,
            locked=locked,
            via_escrow=True,
            escrow=escrow,
        )
        logger.info(
            "sale.escrow_purchased",
            sale=self.address,
            investor=investor,
            escrow=escrow,
            tokens=tokens,
            payment=net,
            fee=fee,
            locked=locked,
        )
        return tokens

    # ------------------------------------------------------------------
    # Lockup release & refunds
    # ------------------------------------------------------------------

    @entrypoint()
    @non_reentrant
    def unlock(self, ctx: CallContext) -> int:
        """Release the caller's whole locked balance once the lockup has ended."""
        self._require_initialized()
        if not self.is_unlock_available():
            raise LockupActiveError()
        account = ctx.sender
        amount = self.locked_balance_of(account)
        if amount == 0:
            raise NothingToUnlockError(account)

        self._storage.locked_balance_of[account] = 0
        self._deliver(account, amount)

        self._emit("Unlocked", account=account, tokens=amount)
        logger.info("sale.unlocked", sale=self.address, account=account, tokens=amount)
        return amount

    @entrypoint()
    @non_reentrant
    def claim_back(self, ctx: CallContext, currency: str) -> int:
        """Return the caller's recorded payment in ``currency`` after a failed sale.

        Clears the caller's purchase and locked balance. Tokens already
        delivered are not clawed back.
        """
        self._require_initialized()
        status = self.state()
        if status is not SaleStatus.FAILED:
            raise PreconditionError(f"Claim-back requires a failed sale, sale is {status}")
        if self.config.immediate_transfer:
            raise PreconditionError("Payments were forwarded; nothing is held for refunds")
        currency = normalize_address(currency)
        account = ctx.sender
        paid = self.paid_amount(account, currency)
        if paid == 0:
            raise NothingToClaimError(account, currency)

        s = self._storage
        s.paid_amount[account][currency] = 0
        s.total_payments[currency] = self.total_payments(currency) - paid
        forfeited = s.purchase_of.pop(account, 0)
        s.total_purchases -= forfeited
        s.locked_balance_of.pop(account, None)

        self._pay_out(currency, account, paid)

        self._emit(
            "ClaimedBack",
            account=account,
            currency=currency,
            amount=paid,
            tokens_forfeited=forfeited,
        )
        logger.info(
            "sale.claimed_back",
            sale=self.address,
            account=account,
            currency=currency,
            amount=paid,
        )
        return paid

    @entrypoint()
    @non_reentrant
    def withdraw_funds(self, ctx: CallContext, currency: str) -> int:
        """Sweep the sale's balance in ``currency`` to the owner after success."""
        self._authorize(ctx, Capability.WITHDRAW_FUNDS)
        status = self.state()
        if status is not SaleStatus.SUCCESSFUL:
            raise PreconditionError(f"Withdrawal requires a successful sale, sale is {status}")
        currency = normalize_address(currency)
        if currency == self._storage.token:
            raise PreconditionError("The sale token cannot be withdrawn as funds")
        amount = self._currency_balance(currency)
        if amount == 0:
            raise InvalidAmountError(f"No funds held in {currency}")

        self._pay_out(currency, self._storage.owner, amount)

        self._emit("FundsWithdrawn", currency=currency, amount=amount, to=self._storage.owner)
        logger.info("sale.funds_withdrawn", sale=self.address, currency=currency, amount=amount)
        return amount

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @entrypoint()
    def add_to_whitelist(self, ctx: CallContext, accounts: Iterable[str]) -> int:
        self._authorize(ctx, Capability.MANAGE_WHITELIST)
        batch = self._batch(accounts)
        added = [a for a in batch if a not in self._storage.whitelist]
        self._storage.whitelist.update(added)
        self._emit("WhitelistAdded", accounts=added)
        logger.info("sale.whitelist_added", sale=self.address, count=len(added))
        return len(added)

    @entrypoint()
    def remove_from_whitelist(self, ctx: CallContext, accounts: Iterable[str]) -> int:
        self._authorize(ctx, Capability.MANAGE_WHITELIST)
        batch = self._batch(accounts)
        removed = [a for a in batch if a in self._storage.whitelist]
        self._storage.whitelist.difference_update(removed)
        self._emit("WhitelistRemoved", accounts=removed)
        logger.info("sale.whitelist_removed", sale=self.address, count=len(removed))
        return len(removed)

    @entrypoint()
    def add_payment_currencies(self, ctx: CallContext, currencies: Iterable[str]) -> int:
        self._authorize(ctx, Capability.MANAGE_WHITELIST)
        batch = self._batch(currencies, allow_native=True)
        for currency in batch:
            if currency == self._storage.token:
                raise PreconditionError("The sale token cannot be a payment currency")
            if not is_native(currency) and not isinstance(
                self.chain.find_contract(currency), TokenLedger
            ):
                raise ContractNotFoundError(currency)
        added = [c for c in batch if c not in self._storage.currency_whitelist]
        self._storage.currency_whitelist.update(added)
        self._emit("CurrencyWhitelistAdded", currencies=added)
        logger.info("sale.currencies_added", sale=self.address, currencies=added)
        return len(added)

    @entrypoint()
    def remove_payment_currencies(self, ctx: CallContext, currencies: Iterable[str]) -> int:
        self._authorize(ctx, Capability.MANAGE_WHITELIST)
        batch = self._batch(currencies, allow_native=True)
        removed = [c for c in batch if c in self._storage.currency_whitelist]
        self._storage.currency_whitelist.difference_update(removed)
        self._emit("CurrencyWhitelistRemoved", currencies=removed)
        logger.info("sale.currencies_removed", sale=self.address, currencies=removed)
        return len(removed)

    @entrypoint()
    def pause(self, ctx: CallContext) -> None:
        self._authorize(ctx, Capability.PAUSE)
        if self._storage.paused:
            raise SalePausedError()
        self._storage.paused = True
        self._emit("Paused", by=ctx.sender)
        logger.info("sale.paused", sale=self.address, by=ctx.sender)

    @entrypoint()
    def unpause(self, ctx: CallContext) -> None:
        self._authorize(ctx, Capability.PAUSE)
        if not self._storage.paused:
            raise PreconditionError("Sale is not paused")
        self._storage.paused = False
        self._emit("Unpaused", by=ctx.sender)
        logger.info("sale.unpaused", sale=self.address, by=ctx.sender)

    @entrypoint()
    def set_lockup_tvl_reached(self, ctx: CallContext, force: bool = False) -> None:
        """Mark the lockup threshold as reached; without ``force`` the threshold must be met."""
        self._authorize(ctx, Capability.MANAGE_LOCKUP)
        if self._storage.lockup_tvl_reached:
            return
        if not force and not self._threshold_met():
            raise PreconditionError(
                f"Lockup threshold {self.config.lockup_tvl_threshold} not met "
                f"({self._storage.total_purchases} sold)"
            )
        self._mark_lockup_tvl_reached(forced=force)

    @entrypoint()
    def check_lockup_tvl(self, ctx: CallContext) -> bool:
        """Anyone may record that the configured threshold has been met."""
        self._require_initialized()
        if not self._storage.lockup_tvl_reached and self._threshold_met():
            self._mark_lockup_tvl_reached(forced=False)
        return self._storage.lockup_tvl_reached

    @entrypoint()
    def set_fee_manager(self, ctx: CallContext, fee_manager: str) -> None:
        self._authorize(ctx, Capability.CONFIGURE)
        previous = self._storage.fee_manager
        fee_manager = require_address(fee_manager, allow_zero=True)
        self._storage.fee_manager = fee_manager
        self._emit("FeeManagerChanged", previous=previous, current=fee_manager)
        logger.info(
            "sale.fee_manager_changed",
            sale=self.address,
            previous=previous,
            current=fee_manager,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _authorize(self, ctx: CallContext, capability: Capability) -> None:
        self._require_initialized()
        authorizer = self.authorizer or OwnerAuthorizer(self._storage.owner)
        require_capability(authorizer, ctx.sender, capability)

    def _require_open(self) -> None:
        self._require_initialized()
        if self._storage.paused:
            raise SalePausedError()
        status = self.state()
        if status is not SaleStatus.ACTIVE:
            raise SaleNotActiveError(status)

    def _require_currency(self, currency: str) -> None:
        if not self.is_currency_whitelisted(currency):
            raise NotWhitelistedError("Currency", currency)

    def _batch(self, items: Iterable[str], allow_native: bool = False) -> list[str]:
        batch = list(dict.fromkeys(normalize_address(item) for item in items))
        if not batch:
            raise InvalidAmountError("Batch is empty")
        if len(batch) > self._storage.max_batch:
            raise BatchTooLargeError(len(batch), self._storage.max_batch)
        for item in batch:
            require_address(item, allow_zero=allow_native)
        return batch

    def _check_limits(self, buyer: str, tokens: int) -> None:
        config = self.config
        new_purchase = self.purchase_of(buyer) + tokens
        if new_purchase < config.min_purchase:
            raise PurchaseLimitError(
                f"Purchase total {new_purchase} below minimum {config.min_purchase}"
            )
        if new_purchase > config.max_purchase:
            raise PurchaseLimitError(
                f"Purchase total {new_purchase} above maximum {config.max_purchase}"
            )
        if self._storage.total_purchases + tokens > config.hardcap:
            raise PurchaseLimitError(
                f"Purchase of {tokens} exceeds hardcap {config.hardcap} "
                f"({self._storage.total_purchases} sold)"
            )

    @staticmethod
    def _check_payment_value(ctx: CallContext, currency: str, expected: int) -> None:
        if is_native(currency):
            if ctx.value != expected:
                raise InvalidAmountError(f"Expected {expected} native value, got {ctx.value}")
        elif ctx.value:
            raise InvalidAmountError("Native value sent with a token payment")

    def _record_purchase(self, buyer: str, currency: str, tokens: int, net: int) -> int:
        """Update the ledger for a purchase and return the locked part of ``tokens``."""
        s = self._storage
        config = self.config

        if s.lockup_tvl_reached:
            locked = 0
        else:
            locked = tokens - tokens * (BASIS_POINTS - config.lockup_percent) // BASIS_POINTS

        s.purchase_of[buyer] = self.purchase_of(buyer) + tokens
        s.total_purchases += tokens
        if locked:
            s.locked_balance_of[buyer] = self.locked_balance_of(buyer) + locked
        if buyer not in s.participants:
            s.participants.add(buyer)
        s.total_payments[currency] = self.total_payments(currency) + net
        if not config.immediate_transfer:
            paid = s.paid_amount.setdefault(buyer, {})
            paid[currency] = paid.get(currency, 0) + net

        if not s.lockup_tvl_reached and self._threshold_met():
            self._mark_lockup_tvl_reached(forced=False)
        return locked

    def _threshold_met(self) -> bool:
        threshold = self.config.lockup_tvl_threshold
        return threshold > 0 and self._storage.total_purchases >= threshold

    def _mark_lockup_tvl_reached(self, forced: bool) -> None:
        self._storage.lockup_tvl_reached = True
        self._emit(
            "LockupTVLReached",
            total_purchases=self._storage.total_purchases,
            forced=forced,
        )
        logger.info(
            "sale.lockup_tvl_reached",
            sale=self.address,
            total_purchases=self._storage.total_purchases,
            forced=forced,
        )

    def _collect(self, currency: str, payer: str, amount: int) -> None:
        """Pull a token payment into the sale (native value arrives with the call)."""
        if is_native(currency):
            return
        self._currency_token(currency).transfer_from(
            self._as_caller(), payer, self.address, amount
        )

    def _settle(self, currency: str, net: int, fee: int, quote: FeeQuote) -> None:
        if fee:
            self._pay_out(currency, quote.recipient, fee)
            self._emit(
                "FeePaid",
                currency=currency,
                amount=fee,
                recipient=quote.recipient,
                rate_bps=quote.rate_bps,
                source=quote.source,
            )
        if self.config.immediate_transfer:
            self._pay_out(currency, self._storage.owner, net)

    def _deliver(self, to: str, amount: int) -> None:
        """Send sale tokens from inventory, minting only the shortfall."""
        if amount == 0:
            return
        token = self._sale_token()
        from_inventory = min(token.balance_of(self.address), amount)
        if from_inventory:
            token.transfer(self._as_caller(), to, from_inventory)
        shortfall = amount - from_inventory
        if shortfall:
            if not token.has_role(Role.MINTER.value, self.address):
                raise MintingNotAllowedError(self._storage.token, self.address)
            token.mint(self._as_caller(), to, shortfall)
            logger.debug("sale.minted_shortfall", sale=self.address, to=to, amount=shortfall)

    def _pay_out(self, currency: str, to: str, amount: int) -> None:
        if amount == 0:
            return
        if is_native(currency):
            self.chain.transfer_native(self.address, to, amount)
        else:
            self._currency_token(currency).transfer(self._as_caller(), to, amount)

    def _currency_balance(self, currency: str) -> int:
        if is_native(currency):
            return self.native_balance
        return self._currency_token(currency).balance_of(self.address)

    def _currency_token(self, currency: str) -> TokenLedger:
        token = self.chain.find_contract(currency)
        if not isinstance(token, TokenLedger):
            raise ContractNotFoundError(currency)
        return token

    def _sale_token(self) -> TokenLedger:
        return self._currency_token(self._storage.token)

    def _fee_oracle(self) -> object | None:
        if self._storage.fee_manager == ZERO_ADDRESS:
            return None
        return self.chain.find_contract(self._storage.fee_manager)

    def _resolve_fee(self) -> FeeQuote:
        oracle = self._fee_oracle()
        if oracle is None:
            return NO_FEE
        return self.fee_resolver.resolve(
            oracle,
            self._storage.deal_type,
            self.config.tenant_id,
            savepoint=self.chain.savepoint,
        )

    def _escrow_registry(self) -> EscrowRegistry | None:
        oracle = self._fee_oracle()
        lookup = getattr(oracle, "escrow_factory", None)
        if lookup is None:
            return None
        result = try_call(lookup, savepoint=self.chain.savepoint)
        address = result.unwrap_or(ZERO_ADDRESS)
        if address == ZERO_ADDRESS:
            return None
        registry = self.chain.find_contract(address)
        if not isinstance(registry, EscrowRegistry):
            return None
        return registry


__all__ = ["NATIVE_ASSET", "SaleInfo", "SaleStorage", "TokenSale"]
