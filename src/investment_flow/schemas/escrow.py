"""Pydantic schemas for escrow reads and the health endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field

from investment_flow.domain.enums import EscrowStatus  # noqa: TC001 - needed at runtime by pydantic


class EscrowResponse(BaseModel):
    """Snapshot of one investment escrow."""

    address: str
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
    rejection_reason: str = ""
    can_refund: bool
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    chain: str = "unknown"
    contracts: int = 0
