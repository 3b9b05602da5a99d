"""Collaborator Protocols.

Defines the narrow call surface between the escrow, the sale and their
external collaborators. These are Protocols (structural subtyping) so concrete
collaborators, including test doubles, only need to match the shape.

The domain layer has ZERO imports from the ledger runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from investment_flow.domain.addresses import normalize_address
from investment_flow.domain.enums import Capability


@dataclass(frozen=True)
class CallContext:
    """Caller identity and attached native value for one contract call.

    Attributes:
        sender: Address of the immediate caller (account or contract).
        value: Native-asset amount attached to the call.
    """

    sender: str
    value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", normalize_address(self.sender))


@runtime_checkable
class Authorizer(Protocol):
    """Answers whether a principal holds a capability.

    Concrete implementations:
        - contracts/access.py OwnerAuthorizer      (single owner holds everything)
        - contracts/access.py RoleAuthorizer       (multi-principal grants)
        - contracts/access.py EscrowAdminAuthorizer (delegates to an escrow registry)
    """

    def has_capability(self, principal: str, capability: Capability) -> bool: ...


@runtime_checkable
class TokenLedger(Protocol):
    """ERC20-like token surface used by escrows and sales."""

    def balance_of(self, account: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...

    def transfer(self, ctx: CallContext, to: str, amount: int) -> bool: ...

    def transfer_from(self, ctx: CallContext, owner: str, to: str, amount: int) -> bool: ...

    def approve(self, ctx: CallContext, spender: str, amount: int) -> bool: ...

    def has_role(self, role: str, account: str) -> bool: ...

    def mint(self, ctx: CallContext, to: str, amount: int) -> None: ...


@runtime_checkable
class EscrowRegistry(Protocol):
    """Certifies escrow instances and escrow administrators."""

    def is_valid_escrow(self, address: str) -> bool: ...

    def is_admin(self, address: str) -> bool: ...


@runtime_checkable
class MinimalFeeOracle(Protocol):
    def get_commission_rate(self, deal_type: str) -> int: ...

    def get_fee_recipient(self, deal_type: str) -> str: ...


@runtime_checkable
class TenantFeeOracle(Protocol):
    def get_tenant_commission_rate(self, tenant_id: int, deal_type: str) -> int: ...

    def get_tenant_fee_recipient(self, tenant_id: int, deal_type: str) -> str: ...


@runtime_checkable
class EscrowPurchaser(Protocol):
    """The sale entry point an approved escrow calls into."""

    def purchase_with_escrow(
        self,
        ctx: CallContext,
        investor: str,
        payment_amount: int,
        payment_token: str,
    ) -> int: ...
