"""Domain layer - pure business rules shared by the contracts, services and API."""

from investment_flow.domain.addresses import NATIVE_ASSET, ZERO_ADDRESS
from investment_flow.domain.enums import (
    AuditActionType,
    AuditEntityType,
    AuditOutcome,
    Capability,
    EscrowStatus,
    Role,
    SaleStatus,
)
from investment_flow.domain.exceptions import (
    AuthenticationError,
    ContractNotFoundError,
    InvalidStateTransitionError,
    InvestmentFlowError,
    UnauthorizedError,
)
from investment_flow.domain.fees import FeeQuote, FeeResolver
from investment_flow.domain.protocols import Authorizer, CallContext
from investment_flow.domain.results import CallResult, try_call
from investment_flow.domain.state_machine import (
    EscrowStateMachine,
    validate_transition,
)

__all__ = [
    "NATIVE_ASSET",
    "ZERO_ADDRESS",
    "AuditActionType",
    "AuditEntityType",
    "AuditOutcome",
    "Capability",
    "EscrowStatus",
    "Role",
    "SaleStatus",
    "AuthenticationError",
    "ContractNotFoundError",
    "InvalidStateTransitionError",
    "InvestmentFlowError",
    "UnauthorizedError",
    "FeeQuote",
    "FeeResolver",
    "Authorizer",
    "CallContext",
    "CallResult",
    "try_call",
    "EscrowStateMachine",
    "validate_transition",
]
