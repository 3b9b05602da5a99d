"""Tests for fee resolution and fallible collaborator calls."""

from __future__ import annotations

import pytest
from chain_helpers import sale_config

from investment_flow.domain.addresses import ZERO_ADDRESS
from investment_flow.domain.fees import (
    BASIS_POINTS,
    NO_FEE,
    FeeQuote,
    FeeResolver,
    MinimalFeeStrategy,
    TenantFeeStrategy,
)
from investment_flow.domain.results import CallResult, try_call
from investment_flow.schemas import sale as sale_schemas

RECIPIENT = "0x" + "ab" * 20
TENANT_RECIPIENT = "0x" + "cd" * 20


class MinimalOracle:
    def __init__(self, rate: int, recipient: str = RECIPIENT) -> None:
        self.rate = rate
        self.recipient = recipient

    def get_commission_rate(self, deal_type: str) -> int:
        return self.rate

    def get_fee_recipient(self, deal_type: str) -> str:
        return self.recipient


class RevertingOracle:
    def get_commission_rate(self, deal_type: str) -> int:
        raise RuntimeError("oracle reverted")

    def get_fee_recipient(self, deal_type: str) -> str:
        return RECIPIENT


class TenantOracle:
    """Only implements the tenant-aware interface."""

    def __init__(self, rates: dict[int, int]) -> None:
        self.rates = rates
        self.seen: list[int] = []

    def get_tenant_commission_rate(self, tenant_id: int, deal_type: str) -> int:
        self.seen.append(tenant_id)
        if tenant_id not in self.rates:
            raise LookupError(f"tenant {tenant_id} not configured")
        return self.rates[tenant_id]

    def get_tenant_fee_recipient(self, tenant_id: int, deal_type: str) -> str:
        return TENANT_RECIPIENT


class TestFeeQuote:
    def test_fee_rounds_down(self) -> None:
        quote = FeeQuote(rate_bps=250, recipient=RECIPIENT)
        assert quote.fee_for(1_000) == 25
        assert quote.fee_for(39) == 0

    def test_zero_recipient_not_chargeable(self) -> None:
        quote = FeeQuote(rate_bps=500, recipient=ZERO_ADDRESS)
        assert not quote.is_chargeable
        assert quote.fee_for(1_000) == 0

    def test_rate_above_full_not_chargeable(self) -> None:
        quote = FeeQuote(rate_bps=10_001, recipient=RECIPIENT)
        assert not quote.is_chargeable

    def test_no_fee_constant(self) -> None:
        assert NO_FEE.fee_for(10**18) == 0

    def test_sale_config_shares_the_basis_point_scale(self) -> None:
        assert sale_schemas.BASIS_POINTS is BASIS_POINTS
        assert sale_config(lockup_percent=BASIS_POINTS).lockup_percent == BASIS_POINTS
        with pytest.raises(ValueError):
            sale_config(reserved_percent=BASIS_POINTS + 1)


class TestFeeResolver:
    def test_default_strategy_order(self) -> None:
        assert FeeResolver().strategy_names == ["minimal", "tenant", "zero_tenant"]

    def test_no_oracle_means_no_fee(self) -> None:
        assert FeeResolver().resolve(None, "token_sale") is NO_FEE

    def test_minimal_oracle_wins(self) -> None:
        quote = FeeResolver().resolve(MinimalOracle(300), "token_sale")
        assert quote.rate_bps == 300
        assert quote.recipient == RECIPIENT
        assert quote.source == "minimal"

    def test_reverting_oracle_yields_no_fee(self) -> None:
        assert FeeResolver().resolve(RevertingOracle(), "token_sale") == NO_FEE

    def test_zero_rate_falls_through(self) -> None:
        quote = FeeResolver().resolve(MinimalOracle(0), "token_sale")
        assert quote == NO_FEE

    def test_oversized_rate_is_unresolved(self) -> None:
        assert FeeResolver().resolve(MinimalOracle(20_000), "token_sale") == NO_FEE

    def test_tenant_rate_used_when_configured(self) -> None:
        oracle = TenantOracle({7: 150, 0: 50})
        quote = FeeResolver().resolve(oracle, "token_sale", tenant_id=7)
        assert quote.rate_bps == 150
        assert quote.recipient == TENANT_RECIPIENT
        assert quote.source == "tenant"

    def test_falls_back_to_tenant_zero(self) -> None:
        oracle = TenantOracle({0: 50})
        quote = FeeResolver().resolve(oracle, "token_sale", tenant_id=7)
        assert quote.rate_bps == 50
        assert quote.source == "zero_tenant"
        assert oracle.seen == [7, 0]

    def test_object_without_fee_interface(self) -> None:
        assert FeeResolver().resolve(object(), "token_sale") == NO_FEE

    def test_custom_strategies(self) -> None:
        resolver = FeeResolver(strategies=[TenantFeeStrategy()])
        assert resolver.resolve(MinimalOracle(300), "token_sale") == NO_FEE

    def test_strategy_reports_missing_method(self) -> None:
        result = MinimalFeeStrategy().resolve(object(), "token_sale", 0)
        assert not result.ok
        assert isinstance(result.error, AttributeError)


class TestTryCall:
    def test_success(self) -> None:
        result = try_call(lambda x: x * 2, 21)
        assert result.ok
        assert result.value == 42

    def test_failure_is_captured(self) -> None:
        def boom() -> int:
            raise ValueError("nope")

        result = try_call(boom)
        assert not result.ok
        assert isinstance(result.error, ValueError)
        assert result.unwrap_or(7) == 7

    def test_unwrap_or_replaces_none(self) -> None:
        assert CallResult(value=None).unwrap_or(3) == 3

    def test_savepoint_wraps_call(self) -> None:
        entered: list[str] = []

        class Scope:
            def __enter__(self) -> None:
                entered.append("enter")

            def __exit__(self, *exc: object) -> None:
                entered.append("exit")

        try_call(lambda: 1, savepoint=Scope)
        assert entered == ["enter", "exit"]

    def test_savepoint_sees_exception(self) -> None:
        seen: list[object] = []

        class Scope:
            def __enter__(self) -> None:
                return None

            def __exit__(self, exc_type: object, *rest: object) -> None:
                seen.append(exc_type)

        def boom() -> None:
            raise KeyError("x")

        result = try_call(boom, savepoint=Scope)
        assert not result.ok
        assert seen == [KeyError]


@pytest.mark.parametrize(("amount", "rate", "expected"), [(10_000, 100, 100), (999, 1, 0)])
def test_fee_formula(amount: int, rate: int, expected: int) -> None:
    assert FeeQuote(rate_bps=rate, recipient=RECIPIENT).fee_for(amount) == expected
