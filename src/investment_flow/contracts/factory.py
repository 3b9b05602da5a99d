"""Escrow factory.

Deploys one InvestmentEscrow per (investor, sale, currency), certifies the
escrows it deployed to sales (is_valid_escrow) and keeps the list of escrow
admins (is_admin) those escrows defer to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from investment_flow.config import get_settings
from investment_flow.contracts.chain import Contract, ContractStorage, entrypoint
from investment_flow.contracts.escrow import InvestmentEscrow
from investment_flow.domain.addresses import (
    ZERO_ADDRESS,
    is_native,
    normalize_address,
    require_address,
)
from investment_flow.domain.enums import EscrowStatus
from investment_flow.domain.exceptions import (
    ContractNotFoundError,
    EscrowAlreadyOpenError,
    InvalidAmountError,
    UnauthorizedError,
)
from investment_flow.domain.protocols import EscrowPurchaser, TokenLedger
from investment_flow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from investment_flow.domain.protocols import CallContext

logger = get_logger(__name__)

EscrowKey = tuple[str, str, str]


@dataclass
class FactoryStorage(ContractStorage):
    owner: str = ZERO_ADDRESS
    admin_action_window: int = 0
    expiration: int = 0
    admins: set[str] = field(default_factory=set)
    escrows: set[str] = field(default_factory=set)
    latest: dict[EscrowKey, str] = field(default_factory=dict)


class EscrowFactory(Contract):
    contract_type = "escrow_factory"
    storage_class = FactoryStorage
    _storage: FactoryStorage

    @entrypoint()
    def initialize(
        self,
        ctx: CallContext,
        admins: Iterable[str] = (),
        admin_action_window: int | None = None,
        expiration: int | None = None,
    ) -> None:
        """Set the owner and escrow admins; deadlines default to configuration."""
        self._initialize_once()
        settings = get_settings()
        window = (
            settings.escrow_admin_action_window_seconds
            if admin_action_window is None
            else admin_action_window
        )
        lifetime = settings.escrow_expiration_seconds if expiration is None else expiration
        if window <= 0 or lifetime < window:
            raise InvalidAmountError(
                f"Need 0 < admin_action_window <= expiration, got {window} and {lifetime}"
            )

        s = self._storage
        s.owner = ctx.sender
        s.admin_action_window = window
        s.expiration = lifetime
        s.admins = {require_address(a) for a in admins}
        logger.info(
            "factory.initialized",
            factory=self.address,
            admins=len(s.admins),
            admin_action_window=window,
            expiration=lifetime,
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._storage.owner

    def is_admin(self, address: str) -> bool:
        return normalize_address(address) in self._storage.admins

    def is_valid_escrow(self, address: str) -> bool:
        return normalize_address(address) in self._storage.escrows

    def escrow_for(self, investor: str, sale: str, currency: str) -> str:
        """Latest escrow for the triple, or the zero address."""
        key = (normalize_address(investor), normalize_address(sale), normalize_address(currency))
        return self._storage.latest.get(key, ZERO_ADDRESS)

    def escrows(self) -> list[str]:
        return sorted(self._storage.escrows)

    @entrypoint()
    def add_admin(self, ctx: CallContext, admin: str) -> None:
        self._require_owner(ctx)
        admin = require_address(admin)
        self._storage.admins.add(admin)
        self._emit("AdminAdded", admin=admin)
        logger.info("factory.admin_added", factory=self.address, admin=admin)

    @entrypoint()
    def remove_admin(self, ctx: CallContext, admin: str) -> None:
        self._require_owner(ctx)
        admin = normalize_address(admin)
        self._storage.admins.discard(admin)
        self._emit("AdminRemoved", admin=admin)
        logger.info("factory.admin_removed", factory=self.address, admin=admin)

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    @entrypoint()
    def create_escrow(self, ctx: CallContext, sale: str, currency: str) -> InvestmentEscrow:
        """Deploy an escrow for the caller, who becomes its investor."""
        self._require_initialized()
        investor = ctx.sender
        sale = require_address(sale)
        currency = normalize_address(currency)
        if not isinstance(self.chain.find_contract(sale), EscrowPurchaser):
            raise ContractNotFoundError(sale)
        if not is_native(currency) and not isinstance(
            self.chain.find_contract(currency), TokenLedger
        ):
            raise ContractNotFoundError(currency)

        key = (investor, sale, currency)
        previous = self._storage.latest.get(key)
        if previous is not None:
            existing = self.chain.contract_at(previous, InvestmentEscrow)
            if existing.status is EscrowStatus.ACTIVE:
                raise EscrowAlreadyOpenError(previous)

        now = self.chain.now
        escrow = self.chain.deploy(InvestmentEscrow)
        escrow.initialize(
            self._as_caller(),
            investor=investor,
            sale=sale,
            currency=currency,
            admin_deadline=now + self._storage.admin_action_window,
            expires_at=now + self._storage.expiration,
        )
        self._storage.escrows.add(escrow.address)
        self._storage.latest[key] = escrow.address

        self._emit(
            "EscrowCreated",
            escrow=escrow.address,
            investor=investor,
            sale=sale,
            currency=currency,
        )
        logger.info(
            "factory.escrow_created",
            factory=self.address,
            escrow=escrow.address,
            investor=investor,
            sale=sale,
        )
        return escrow

    def _require_owner(self, ctx: CallContext) -> None:
        self._require_initialized()
        if ctx.sender != self._storage.owner:
            raise UnauthorizedError(ctx.sender, "manage escrow admins")


__all__ = ["EscrowFactory", "FactoryStorage"]
