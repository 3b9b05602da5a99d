"""Pydantic schemas for token sales.

SaleConfig is the immutable configuration a TokenSale is initialized with.
The response schemas define the JSON shapes the read API returns.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from investment_flow.domain.enums import SaleStatus  # noqa: TC001 - needed at runtime by pydantic
from investment_flow.domain.fees import BASIS_POINTS

PRICE_SCALE = 10**18


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class SaleConfig(BaseModel):
    """Offering parameters fixed at initialization.

    Token amounts (caps, purchase limits, threshold) are in token base units.
    ``price`` is the payment amount per whole token scaled by 1e18, so
    ``payment = tokens * price // 1e18``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    price: int = Field(..., gt=0, description="Payment units per token, scaled by 1e18")
    hardcap: int = Field(..., gt=0, description="Maximum tokens sold")
    softcap: int = Field(default=0, ge=0, description="Tokens that must sell for success")
    min_purchase: int = Field(default=0, ge=0, description="Minimum cumulative tokens per buyer")
    max_purchase: int = Field(..., gt=0, description="Maximum cumulative tokens per buyer")
    duration: int = Field(..., gt=0, description="Sale duration in seconds")
    lockup_percent: int = Field(
        default=0,
        ge=0,
        le=BASIS_POINTS,
        description="Share of each purchase locked until release, in basis points",
    )
    lockup_duration: int = Field(default=0, ge=0, description="Seconds from sale start")
    lockup_tvl_threshold: int = Field(
        default=0,
        ge=0,
        description="Tokens sold at which locked balances become releasable (0 = manual only)",
    )
    immediate_transfer: bool = Field(
        default=True,
        description="Forward net payments to the owner instead of holding them for refunds",
    )
    reserved_percent: int = Field(
        default=0,
        ge=0,
        le=BASIS_POINTS,
        description="Share of the hardcap reserved for the issuer, in basis points",
    )
    tenant_id: int = Field(default=0, ge=0)
    deal_type: str | None = Field(
        default=None,
        description="Fee schedule key; defaults to the configured fee_deal_type",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> SaleConfig:
        if self.softcap > self.hardcap:
            raise ValueError("softcap cannot exceed hardcap")
        if self.min_purchase > self.max_purchase:
            raise ValueError("min_purchase cannot exceed max_purchase")
        return self


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class SaleResponse(BaseModel):
    """Snapshot of a sale's configuration and ledger totals."""

    address: str
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
    total_payments: dict[str, int] = Field(
        default_factory=dict,
        description="Net-of-fee payments per currency",
    )


class InvestorPositionResponse(BaseModel):
    """One investor's standing in a sale."""

    sale: str
    investor: str
    whitelisted: bool
    participant: bool
    purchased: int
    locked: int
    paid: dict[str, int] = Field(
        default_factory=dict,
        description="Refundable payments per currency (vault mode only)",
    )
