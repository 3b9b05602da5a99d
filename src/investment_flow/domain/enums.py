"""Domain enumerations for the investment flow.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class EscrowStatus(enum.StrEnum):
    """Lifecycle states of an investment escrow.

    State transitions are enforced by the EscrowStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    ACTIVE = "ACTIVE"
    APPROVED = "APPROVED"
    PARTIALLY_APPROVED = "PARTIALLY_APPROVED"
    REJECTED = "REJECTED"
    EXECUTED = "EXECUTED"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"


class SaleStatus(enum.StrEnum):
    """Derived status of a token sale.

    Never stored: computed from the ledger and the current time on each read.
    """

    ACTIVE = "ACTIVE"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"


class Capability(enum.StrEnum):
    """Permissions checked through an Authorizer before administrative calls."""

    MANAGE_WHITELIST = "manage_whitelist"
    PAUSE = "pause"
    MANAGE_LOCKUP = "manage_lockup"
    CONFIGURE = "configure"
    WITHDRAW_FUNDS = "withdraw_funds"
    ESCROW_ADMIN = "escrow_admin"


class Role(enum.StrEnum):
    """Roles held on token contracts."""

    MINTER = "MINTER_ROLE"


class AuditActionType(enum.StrEnum):
    """Types of actions recorded in the audit_logs table."""

    # Escrow lifecycle
    ESCROW_CREATE = "escrow_create"
    DEPOSIT = "deposit"
    APPROVE = "approve"
    PARTIAL_APPROVE = "partial_approve"
    REJECT = "reject"
    REFUND = "refund"
    EMERGENCY_WITHDRAW = "emergency_withdraw"

    # Sale activity
    PURCHASE = "purchase"
    UNLOCK = "unlock"
    CLAIM_BACK = "claim_back"
    WITHDRAW = "withdraw"
    TOKEN_MINT = "token_mint"

    # Administration
    WHITELIST_ADD = "whitelist_add"
    WHITELIST_REMOVE = "whitelist_remove"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    SETTINGS_CHANGE = "settings_change"


class AuditEntityType(enum.StrEnum):
    """Kinds of entities an audit entry can refer to."""

    ESCROW = "escrow"
    SALE = "sale"
    TOKEN = "token"
    FEE_MANAGER = "fee_manager"
    ESCROW_FACTORY = "escrow_factory"


class AuditOutcome(enum.StrEnum):
    """Result of an audited action."""

    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
