"""Contracts layer: the ledger runtime and the contracts deployed on it."""

from investment_flow.contracts.access import (
    EscrowAdminAuthorizer,
    OwnerAuthorizer,
    RoleAuthorizer,
)
from investment_flow.contracts.chain import Chain, ChainEvent, Contract
from investment_flow.contracts.clock import ManualClock, SystemClock
from investment_flow.contracts.escrow import InvestmentEscrow
from investment_flow.contracts.factory import EscrowFactory
from investment_flow.contracts.fee_manager import FeeManager
from investment_flow.contracts.sale import TokenSale
from investment_flow.contracts.token import FungibleToken

__all__ = [
    "Chain",
    "ChainEvent",
    "Contract",
    "EscrowAdminAuthorizer",
    "EscrowFactory",
    "FeeManager",
    "FungibleToken",
    "InvestmentEscrow",
    "ManualClock",
    "OwnerAuthorizer",
    "RoleAuthorizer",
    "SystemClock",
    "TokenSale",
]
