"""Investment escrow contract.

Holds a single investor deposit for one sale and one payment currency while
an escrow admin decides on it. Approval forwards the approved part into the
sale through purchase_with_escrow; rejection and the time-based paths return
the deposit to the investor.

Deadlines:
    admin_deadline  after this, anyone may trigger a refund of a funded,
                    undecided escrow
    expires_at      hard expiration; deposits and approvals stop, refunds open
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

from statemachine.exceptions import TransitionNotAllowed

from investment_flow.contracts.access import EscrowAdminAuthorizer, require_capability
from investment_flow.contracts.chain import (
    Contract,
    ContractStorage,
    entrypoint,
    non_reentrant,
)
from investment_flow.domain.addresses import ZERO_ADDRESS, is_native, require_address
from investment_flow.domain.enums import Capability, EscrowStatus
from investment_flow.domain.exceptions import (
    ContractNotFoundError,
    DeadlinePassedError,
    EscrowAlreadyFundedError,
    EscrowNotActiveError,
    EscrowNotFundedError,
    InvalidAmountError,
    InvalidStateTransitionError,
    PreconditionError,
    RefundNotAvailableError,
    UnauthorizedError,
)
from investment_flow.domain.protocols import EscrowPurchaser, TokenLedger
from investment_flow.domain.state_machine import EscrowStateMachine
from investment_flow.logging_config import get_logger

if TYPE_CHECKING:
    from investment_flow.contracts.chain import Chain
    from investment_flow.domain.protocols import Authorizer, CallContext

logger = get_logger(__name__)


class EscrowInfo(NamedTuple):
    investor: str
    sale: str
    currency: str
    factory: str
    status: EscrowStatus
    amount: int
    approved_amount: int
    refunded_amount: int
    token_amount: int
    created_at: int
    admin_deadline: int
    expires_at: int
    rejection_reason: str


@dataclass
class EscrowStorage(ContractStorage):
    investor: str = ZERO_ADDRESS
    sale: str = ZERO_ADDRESS
    currency: str = ZERO_ADDRESS
    factory: str = ZERO_ADDRESS
    created_at: int = 0
    admin_deadline: int = 0
    expires_at: int = 0

    amount: int = 0
    approved_amount: int = 0
    refunded_amount: int = 0
    token_amount: int = 0
    status: EscrowStatus = EscrowStatus.ACTIVE
    rejection_reason: str = ""


class InvestmentEscrow(Contract):
    """Per-investor holding contract gated by an admin decision.

    Usage:
        escrow = factory.create_escrow(CallContext(sender=investor), sale.address, NATIVE_ASSET)
        escrow.deposit(CallContext(sender=investor, value=100))
        escrow.partial_approve_and_execute(CallContext(sender=admin), 60)
    """

    contract_type = "escrow"
    storage_class = EscrowStorage
    _storage: EscrowStorage

    def __init__(self, chain: Chain, address: str) -> None:
        super().__init__(chain, address)
        self.authorizer: Authorizer | None = None

    @entrypoint()
    def initialize(
        self,
        ctx: CallContext,
        investor: str,
        sale: str,
        currency: str,
        admin_deadline: int,
        expires_at: int,
    ) -> None:
        """Bind the escrow to its investor, sale and currency.

        The caller becomes the factory whose admins may decide on the escrow.
        """
        self._initialize_once()
        now = self.chain.now
        if not now < admin_deadline <= expires_at:
            raise PreconditionError(
                f"Deadlines must satisfy now < admin_deadline <= expires_at "
                f"(now={now}, admin_deadline={admin_deadline}, expires_at={expires_at})"
            )
        s = self._storage
        s.investor = require_address(investor)
        s.sale = require_address(sale)
        s.currency = require_address(currency, allow_zero=True)
        s.factory = ctx.sender
        s.created_at = now
        s.admin_deadline = admin_deadline
        s.expires_at = expires_at

        self._emit(
            "EscrowInitialized",
            investor=investor,
            sale=sale,
            currency=currency,
            admin_deadline=admin_deadline,
            expires_at=expires_at,
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def investor(self) -> str:
        return self._storage.investor

    @property
    def sale(self) -> str:
        return self._storage.sale

    @property
    def currency(self) -> str:
        return self._storage.currency

    @property
    def factory(self) -> str:
        return self._storage.factory

    @property
    def status(self) -> EscrowStatus:
        return self._storage.status

    @property
    def amount(self) -> int:
        return self._storage.amount

    @property
    def approved_amount(self) -> int:
        return self._storage.approved_amount

    @property
    def refunded_amount(self) -> int:
        return self._storage.refunded_amount

    @property
    def token_amount(self) -> int:
        return self._storage.token_amount

    @property
    def admin_deadline(self) -> int:
        return self._storage.admin_deadline

    @property
    def expires_at(self) -> int:
        return self._storage.expires_at

    @property
    def rejection_reason(self) -> str:
        return self._storage.rejection_reason

    def is_expired(self) -> bool:
        return self.chain.now >= self._storage.expires_at

    def can_refund(self) -> bool:
        """Whether refund() would succeed right now."""
        s = self._storage
        if not s.initialized:
            return False
        if s.status is EscrowStatus.REJECTED:
            return True
        if s.status is not EscrowStatus.ACTIVE:
            return False
        now = self.chain.now
        if now >= s.expires_at:
            return True
        return s.amount > 0 and now >= s.admin_deadline

    def allowed_events(self) -> list[str]:
        return EscrowStateMachine(current_status=self._storage.status.value).get_allowed_events()

    def info(self) -> EscrowInfo:
        s = self._storage
        return EscrowInfo(
            investor=s.investor,
            sale=s.sale,
            currency=s.currency,
            factory=s.factory,
            status=s.status,
            amount=s.amount,
            approved_amount=s.approved_amount,
            refunded_amount=s.refunded_amount,
            token_amount=s.token_amount,
            created_at=s.created_at,
            admin_deadline=s.admin_deadline,
            expires_at=s.expires_at,
            rejection_reason=s.rejection_reason,
        )

    # ------------------------------------------------------------------
    # Investor
    # ------------------------------------------------------------------

    @entrypoint(payable=True)
    @non_reentrant
    def deposit(self, ctx: CallContext, amount: int = 0) -> int:
        """Fund the escrow once.

        Native escrows take the attached value (``amount`` may be omitted or
        must equal it). Token escrows pull ``amount`` with transfer_from.
        """
        self._require_initialized()
        s = self._storage
        if ctx.sender != s.investor:
            raise UnauthorizedError(ctx.sender, "deposit into this escrow")
        self._require_active()
        if s.amount != 0:
            raise EscrowAlreadyFundedError(self.address)
        now = self.chain.now
        if now >= s.expires_at:
            raise DeadlinePassedError("Escrow", s.expires_at, now)

        if is_native(s.currency):
            if amount and amount != ctx.value:
                raise InvalidAmountError(f"Declared {amount} but attached {ctx.value}")
            amount = ctx.value
        elif ctx.value:
            raise InvalidAmountError("Native value sent to a token escrow")
        if amount <= 0:
            raise InvalidAmountError("Deposit must be positive")

        s.amount = amount
        if not is_native(s.currency):
            self._currency_token().transfer_from(
                self._as_caller(), s.investor, self.address, amount
            )

        self._emit("Deposited", investor=s.investor, currency=s.currency, amount=amount)
        logger.info("escrow.deposited", escrow=self.address, investor=s.investor, amount=amount)
        return amount

    # ------------------------------------------------------------------
    # Admin decisions
    # ------------------------------------------------------------------

    @entrypoint()
    @non_reentrant
    def approve_and_execute(self, ctx: CallContext) -> int:
        """Approve the whole deposit and buy with it. Returns tokens bought."""
        self._require_decidable(ctx)
        s = self._storage
        self._require_not_expired()

        s.status = self._fire_transition("approve")
        s.approved_amount = s.amount
        self._emit("Approved", admin=ctx.sender, amount=s.amount)
        logger.info("escrow.approved", escrow=self.address, admin=ctx.sender, amount=s.amount)

        return self._execute_purchase(s.amount)

    @entrypoint()
    @non_reentrant
    def partial_approve_and_execute(self, ctx: CallContext, approved_amount: int) -> int:
        """Buy with ``approved_amount`` of the deposit and refund the rest."""
        self._require_decidable(ctx)
        s = self._storage
        self._require_not_expired()
        if not 0 < approved_amount < s.amount:
            raise InvalidAmountError(
                f"Partial approval must be between 0 and {s.amount} exclusive, "
                f"got {approved_amount}"
            )
        remainder = s.amount - approved_amount

        s.status = self._fire_transition("partially_approve")
        s.approved_amount = approved_amount
        s.refunded_amount = remainder
        self._emit(
            "PartiallyApproved",
            admin=ctx.sender,
            approved_amount=approved_amount,
            refunded_amount=remainder,
        )
        logger.info(
            "escrow.partially_approved",
            escrow=self.address,
            admin=ctx.sender,
            approved=approved_amount,
            remainder=remainder,
        )

        tokens = self._execute_purchase(approved_amount)
        self._send_to_investor(remainder)
        self._emit("Refunded", investor=s.investor, amount=remainder, reason="partial_approval")
        return tokens

    @entrypoint()
    @non_reentrant
    def reject_and_refund(self, ctx: CallContext, reason: str) -> int:
        """Reject the deposit and return all of it to the investor."""
        self._require_decidable(ctx)
        s = self._storage

        s.status = self._fire_transition("reject")
        s.rejection_reason = reason
        s.refunded_amount = s.amount
        self._emit("Rejected", admin=ctx.sender, reason=reason, amount=s.amount)
        logger.info("escrow.rejected", escrow=self.address, admin=ctx.sender, reason=reason)

        self._send_to_investor(s.amount)
        self._emit("Refunded", investor=s.investor, amount=s.amount, reason="rejected")
        return s.amount

    @entrypoint()
    @non_reentrant
    def emergency_withdraw(self, ctx: CallContext) -> int:
        """Sweep the escrow's whole balance in its currency to the investor."""
        self._require_initialized()
        self._require_admin(ctx)
        s = self._storage

        s.status = self._fire_transition("emergency_withdraw")
        s.refunded_amount = s.amount - s.approved_amount
        balance = self._currency_balance()

        self._send_to_investor(balance)
        self._emit("EmergencyWithdrawn", admin=ctx.sender, investor=s.investor, amount=balance)
        logger.warning(
            "escrow.emergency_withdrawn",
            escrow=self.address,
            admin=ctx.sender,
            amount=balance,
        )
        return balance

    # ------------------------------------------------------------------
    # Refund path
    # ------------------------------------------------------------------

    @entrypoint()
    @non_reentrant
    def refund(self, ctx: CallContext) -> int:
        """Return whatever is still owed to the investor. Callable by anyone."""
        self._require_initialized()
        if not self.can_refund():
            raise RefundNotAvailableError(self._storage.status)
        s = self._storage
        owed = s.amount - s.approved_amount - s.refunded_amount

        event = "refund" if s.status is EscrowStatus.REJECTED else "expire"
        s.status = self._fire_transition(event)
        s.refunded_amount += owed

        self._send_to_investor(owed)
        self._emit("Refunded", investor=s.investor, amount=owed, reason=event, caller=ctx.sender)
        logger.info(
            "escrow.refunded",
            escrow=self.address,
            investor=s.investor,
            amount=owed,
            status=s.status,
            caller=ctx.sender,
        )
        return owed

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _execute_purchase(self, approved: int) -> int:
        s = self._storage
        sale = self.chain.find_contract(s.sale)
        if not isinstance(sale, EscrowPurchaser):
            raise ContractNotFoundError(s.sale)

        if is_native(s.currency):
            tokens = sale.purchase_with_escrow(
                self._as_caller(value=approved), s.investor, approved, s.currency
            )
        else:
            token = self._currency_token()
            token.approve(self._as_caller(), s.sale, 0)
            token.approve(self._as_caller(), s.sale, approved)
            tokens = sale.purchase_with_escrow(self._as_caller(), s.investor, approved, s.currency)

        s.token_amount = tokens
        s.status = self._fire_transition("execute_purchase")
        self._emit("Executed", sale=s.sale, payment=approved, tokens=tokens)
        logger.info("escrow.executed", escrow=self.address, payment=approved, tokens=tokens)
        return tokens

    def _fire_transition(self, event_name: str) -> EscrowStatus:
        """Validate a state machine transition and return the resulting status.

        Raises InvalidStateTransitionError if the transition is illegal.
        """
        current = self._storage.status
        sm = EscrowStateMachine(current_status=current.value)
        event_method = getattr(sm, event_name, None)
        if event_method is None:
            raise InvalidStateTransitionError(current, event_name)
        try:
            event_method()
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(current, event_name) from err
        return EscrowStatus(sm.status)

    def _require_admin(self, ctx: CallContext) -> None:
        authorizer = self.authorizer or EscrowAdminAuthorizer(self.chain, self._storage.factory)
        require_capability(authorizer, ctx.sender, Capability.ESCROW_ADMIN)

    def _require_active(self) -> None:
        if self._storage.status is not EscrowStatus.ACTIVE:
            raise EscrowNotActiveError(self._storage.status)

    def _require_decidable(self, ctx: CallContext) -> None:
        self._require_initialized()
        self._require_admin(ctx)
        self._require_active()
        if self._storage.amount == 0:
            raise EscrowNotFundedError(self.address)

    def _require_not_expired(self) -> None:
        now = self.chain.now
        if now >= self._storage.expires_at:
            raise DeadlinePassedError("Escrow", self._storage.expires_at, now)

    def _send_to_investor(self, amount: int) -> None:
        if amount == 0:
            return
        if is_native(self._storage.currency):
            self.chain.transfer_native(self.address, self._storage.investor, amount)
        else:
            self._currency_token().transfer(self._as_caller(), self._storage.investor, amount)

    def _currency_balance(self) -> int:
        if is_native(self._storage.currency):
            return self.native_balance
        return self._currency_token().balance_of(self.address)

    def _currency_token(self) -> TokenLedger:
        token = self.chain.find_contract(self._storage.currency)
        if not isinstance(token, TokenLedger):
            raise ContractNotFoundError(self._storage.currency)
        return token


__all__ = ["EscrowInfo", "EscrowStorage", "InvestmentEscrow"]
