"""Platform fee resolution.

A sale asks its fee manager for a commission rate and a recipient. The fee
manager may be missing, implement only part of the interface, or revert, so
resolution is an ordered chain of strategies:

    1. MinimalFeeStrategy     get_commission_rate(deal_type) / get_fee_recipient(deal_type)
    2. TenantFeeStrategy      tenant-aware variants keyed by the sale's tenant id
    3. ZeroTenantFeeStrategy  tenant-aware variants with tenant id 0

Each strategy is independently fallible. The first one that resolves a
positive rate and a non-zero recipient wins; if none does, no fee is charged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from investment_flow.domain.addresses import ZERO_ADDRESS
from investment_flow.domain.results import CallResult, try_call
from investment_flow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from contextlib import AbstractContextManager

logger = get_logger(__name__)

BASIS_POINTS = 10_000


@dataclass(frozen=True)
class FeeQuote:
    """A resolved commission rate (basis points) and the address that receives it."""

    rate_bps: int = 0
    recipient: str = ZERO_ADDRESS
    source: str = "none"

    @property
    def is_chargeable(self) -> bool:
        return 0 < self.rate_bps <= BASIS_POINTS and self.recipient != ZERO_ADDRESS

    def fee_for(self, amount: int) -> int:
        """Fee owed on ``amount``, rounded down; zero when the quote is not chargeable."""
        if not self.is_chargeable:
            return 0
        return amount * self.rate_bps // BASIS_POINTS


NO_FEE = FeeQuote()


class FeeStrategy(Protocol):
    """One way of asking a fee oracle for a quote."""

    name: str

    def resolve(
        self,
        oracle: object,
        deal_type: str,
        tenant_id: int,
        savepoint: Callable[[], AbstractContextManager[None]] | None = None,
    ) -> CallResult[FeeQuote]: ...


def _call_method(
    oracle: object,
    method: str,
    *args: object,
    savepoint: Callable[[], AbstractContextManager[None]] | None = None,
) -> CallResult:
    fn = getattr(oracle, method, None)
    if fn is None or not callable(fn):
        return CallResult(error=AttributeError(f"{type(oracle).__name__} has no {method}"))
    return try_call(fn, *args, savepoint=savepoint)


def _quote_from(
    rate: CallResult, recipient: CallResult, source: str
) -> CallResult[FeeQuote]:
    if not rate.ok:
        return CallResult(error=rate.error)
    if not recipient.ok:
        return CallResult(error=recipient.error)
    return CallResult(
        value=FeeQuote(
            rate_bps=int(rate.value or 0),
            recipient=str(recipient.value or ZERO_ADDRESS),
            source=source,
        )
    )


class MinimalFeeStrategy:
    name = "minimal"

    def resolve(
        self,
        oracle: object,
        deal_type: str,
        tenant_id: int,
        savepoint: Callable[[], AbstractContextManager[None]] | None = None,
    ) -> CallResult[FeeQuote]:
        rate = _call_method(oracle, "get_commission_rate", deal_type, savepoint=savepoint)
        recipient = _call_method(oracle, "get_fee_recipient", deal_type, savepoint=savepoint)
        return _quote_from(rate, recipient, self.name)


class TenantFeeStrategy:
    name = "tenant"

    def resolve(
        self,
        oracle: object,
        deal_type: str,
        tenant_id: int,
        savepoint: Callable[[], AbstractContextManager[None]] | None = None,
    ) -> CallResult[FeeQuote]:
        rate = _call_method(
            oracle, "get_tenant_commission_rate", tenant_id, deal_type, savepoint=savepoint
        )
        recipient = _call_method(
            oracle, "get_tenant_fee_recipient", tenant_id, deal_type, savepoint=savepoint
        )
        return _quote_from(rate, recipient, self.name)


class ZeroTenantFeeStrategy(TenantFeeStrategy):
    name = "zero_tenant"

    def resolve(
        self,
        oracle: object,
        deal_type: str,
        tenant_id: int,
        savepoint: Callable[[], AbstractContextManager[None]] | None = None,
    ) -> CallResult[FeeQuote]:
        return super().resolve(oracle, deal_type, 0, savepoint=savepoint)


class FeeResolver:
    """Chain of fee strategies; the first chargeable quote wins.

    Usage:
        resolver = FeeResolver()
        quote = resolver.resolve(fee_manager, "token_sale", tenant_id=7)
        fee = quote.fee_for(base_payment)
    """

    def __init__(self, strategies: Sequence[FeeStrategy] | None = None) -> None:
        self._strategies: tuple[FeeStrategy, ...] = tuple(
            strategies
            if strategies is not None
            else (MinimalFeeStrategy(), TenantFeeStrategy(), ZeroTenantFeeStrategy())
        )

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self._strategies]

    def resolve(
        self,
        oracle: object | None,
        deal_type: str,
        tenant_id: int = 0,
        savepoint: Callable[[], AbstractContextManager[None]] | None = None,
    ) -> FeeQuote:
        """Return the first chargeable quote, or NO_FEE."""
        if oracle is None:
            return NO_FEE

        for strategy in self._strategies:
            result = strategy.resolve(oracle, deal_type, tenant_id, savepoint=savepoint)
            if not result.ok:
                logger.debug(
                    "fees.strategy_failed",
                    strategy=strategy.name,
                    error=str(result.error),
                )
                continue
            quote = result.unwrap_or(NO_FEE)
            if quote.is_chargeable:
                return quote
            logger.debug(
                "fees.strategy_unresolved",
                strategy=strategy.name,
                rate_bps=quote.rate_bps,
                recipient=quote.recipient,
            )

        return NO_FEE
