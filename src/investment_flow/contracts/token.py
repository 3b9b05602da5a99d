"""ERC20-like fungible token.

Used both as the security token a sale distributes and as a payment
currency. Supports role-gated minting and, optionally, the "reset allowance
to zero before changing it" approval rule some stablecoins enforce.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from investment_flow.contracts.chain import Contract, ContractStorage, entrypoint
from investment_flow.domain.addresses import ZERO_ADDRESS, normalize_address, require_address
from investment_flow.domain.enums import Role
from investment_flow.domain.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAmountError,
    PreconditionError,
    UnauthorizedError,
)
from investment_flow.domain.protocols import CallContext
from investment_flow.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class TokenStorage(ContractStorage):
    name: str = ""
    symbol: str = ""
    decimals: int = 18
    admin: str = ZERO_ADDRESS
    zero_reset_approvals: bool = False
    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)
    roles: dict[str, set[str]] = field(default_factory=dict)


class FungibleToken(Contract):
    """A minimal ERC20 with roles.

    The deploying admin receives the minter role and may grant it to others,
    typically to a TokenSale that mints the shortfall of its inventory.
    """

    contract_type = "token"
    storage_class = TokenStorage
    _storage: TokenStorage

    @entrypoint()
    def initialize(
        self,
        ctx: CallContext,
        name: str,
        symbol: str,
        decimals: int = 18,
        zero_reset_approvals: bool = False,
    ) -> None:
        self._initialize_once()
        if not name or not symbol:
            raise PreconditionError("Token name and symbol are required")
        s = self._storage
        s.name = name
        s.symbol = symbol
        s.decimals = decimals
        s.admin = ctx.sender
        s.zero_reset_approvals = zero_reset_approvals
        s.roles[Role.MINTER.value] = {ctx.sender}

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._storage.name

    @property
    def symbol(self) -> str:
        return self._storage.symbol

    @property
    def decimals(self) -> int:
        return self._storage.decimals

    @property
    def total_supply(self) -> int:
        return self._storage.total_supply

    def balance_of(self, account: str) -> int:
        return self._storage.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        key = (normalize_address(owner), normalize_address(spender))
        return self._storage.allowances.get(key, 0)

    def has_role(self, role: str, account: str) -> bool:
        return normalize_address(account) in self._storage.roles.get(str(role), set())

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    @entrypoint()
    def grant_role(self, ctx: CallContext, role: str, account: str) -> None:
        self._require_admin(ctx)
        account = require_address(account)
        self._storage.roles.setdefault(str(role), set()).add(account)
        self._emit("RoleGranted", role=str(role), account=account, sender=ctx.sender)

    @entrypoint()
    def revoke_role(self, ctx: CallContext, role: str, account: str) -> None:
        self._require_admin(ctx)
        account = normalize_address(account)
        self._storage.roles.get(str(role), set()).discard(account)
        self._emit("RoleRevoked", role=str(role), account=account, sender=ctx.sender)

    # ------------------------------------------------------------------
    # ERC20
    # ------------------------------------------------------------------

    @entrypoint()
    def transfer(self, ctx: CallContext, to: str, amount: int) -> bool:
        self._move(ctx.sender, to, amount)
        return True

    @entrypoint()
    def approve(self, ctx: CallContext, spender: str, amount: int) -> bool:
        if amount < 0:
            raise InvalidAmountError("Allowance cannot be negative")
        spender = require_address(spender)
        current = self.allowance(ctx.sender, spender)
        if self._storage.zero_reset_approvals and current != 0 and amount != 0:
            raise PreconditionError(
                "Allowance must be reset to zero before it can be changed",
                code="APPROVE_NONZERO_ALLOWANCE",
            )
        self._storage.allowances[(ctx.sender, spender)] = amount
        self._emit("Approval", owner=ctx.sender, spender=spender, value=amount)
        return True

    @entrypoint()
    def transfer_from(self, ctx: CallContext, owner: str, to: str, amount: int) -> bool:
        owner = normalize_address(owner)
        current = self.allowance(owner, ctx.sender)
        if current < amount:
            raise InsufficientAllowanceError(owner, ctx.sender, amount, current)
        self._storage.allowances[(owner, ctx.sender)] = current - amount
        self._move(owner, to, amount)
        return True

    @entrypoint()
    def mint(self, ctx: CallContext, to: str, amount: int) -> None:
        if not self.has_role(Role.MINTER.value, ctx.sender):
            raise UnauthorizedError(ctx.sender, f"mint {self.symbol}")
        if amount <= 0:
            raise InvalidAmountError("Mint amount must be positive")
        to = require_address(to)
        s = self._storage
        s.total_supply += amount
        s.balances[to] = self.balance_of(to) + amount
        self._emit("Transfer", sender=ZERO_ADDRESS, to=to, value=amount)
        logger.debug("token.minted", token=self.symbol, to=to, amount=amount)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_admin(self, ctx: CallContext) -> None:
        if ctx.sender != self._storage.admin:
            raise UnauthorizedError(ctx.sender, f"administer {self.symbol}")

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError("Transfer amount cannot be negative")
        to = require_address(to)
        available = self.balance_of(sender)
        if available < amount:
            raise InsufficientBalanceError(sender, amount, available)
        s = self._storage
        s.balances[sender] = available - amount
        s.balances[to] = self.balance_of(to) + amount
        self._emit("Transfer", sender=sender, to=to, value=amount)
