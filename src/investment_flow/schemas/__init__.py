"""Pydantic schemas: sale configuration and API response shapes."""

from investment_flow.schemas.audit import AuditLogPage, AuditLogResponse
from investment_flow.schemas.escrow import EscrowResponse, HealthResponse
from investment_flow.schemas.sale import (
    InvestorPositionResponse,
    SaleConfig,
    SaleResponse,
)

__all__ = [
    "AuditLogPage",
    "AuditLogResponse",
    "EscrowResponse",
    "HealthResponse",
    "InvestorPositionResponse",
    "SaleConfig",
    "SaleResponse",
]
