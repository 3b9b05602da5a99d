"""Platform fee manager.

Publishes the commission charged on sales, per deal type and optionally per
tenant, and the address of the escrow factory whose escrows may buy into
sales. Implements both the minimal and the tenant-aware fee interfaces.

A tenant lookup for a tenant that was never configured reverts, which is what
lets a sale fall through to the zero-tenant default.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from investment_flow.contracts.chain import Contract, ContractStorage, entrypoint
from investment_flow.domain.addresses import ZERO_ADDRESS, require_address
from investment_flow.domain.exceptions import (
    InvalidAmountError,
    PreconditionError,
    UnauthorizedError,
)
from investment_flow.domain.fees import BASIS_POINTS
from investment_flow.domain.protocols import CallContext
from investment_flow.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class FeeManagerStorage(ContractStorage):
    owner: str = ZERO_ADDRESS
    escrow_factory: str = ZERO_ADDRESS
    rates: dict[str, int] = field(default_factory=dict)
    recipients: dict[str, str] = field(default_factory=dict)
    tenant_rates: dict[tuple[int, str], int] = field(default_factory=dict)
    tenant_recipients: dict[tuple[int, str], str] = field(default_factory=dict)


class FeeManager(Contract):
    contract_type = "fee_manager"
    storage_class = FeeManagerStorage
    _storage: FeeManagerStorage

    @entrypoint()
    def initialize(self, ctx: CallContext, escrow_factory: str = ZERO_ADDRESS) -> None:
        self._initialize_once()
        self._storage.owner = ctx.sender
        self._storage.escrow_factory = require_address(escrow_factory, allow_zero=True)

    # ------------------------------------------------------------------
    # Minimal interface
    # ------------------------------------------------------------------

    def get_commission_rate(self, deal_type: str) -> int:
        return self._storage.rates.get(deal_type, 0)

    def get_fee_recipient(self, deal_type: str) -> str:
        return self._storage.recipients.get(deal_type, ZERO_ADDRESS)

    # ------------------------------------------------------------------
    # Tenant-aware interface
    # ------------------------------------------------------------------

    def get_tenant_commission_rate(self, tenant_id: int, deal_type: str) -> int:
        key = (tenant_id, deal_type)
        if key not in self._storage.tenant_rates:
            raise PreconditionError(
                f"No commission configured for tenant {tenant_id} and {deal_type}",
                code="TENANT_NOT_CONFIGURED",
            )
        return self._storage.tenant_rates[key]

    def get_tenant_fee_recipient(self, tenant_id: int, deal_type: str) -> str:
        key = (tenant_id, deal_type)
        if key not in self._storage.tenant_recipients:
            raise PreconditionError(
                f"No fee recipient configured for tenant {tenant_id} and {deal_type}",
                code="TENANT_NOT_CONFIGURED",
            )
        return self._storage.tenant_recipients[key]

    def escrow_factory(self) -> str:
        return self._storage.escrow_factory

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @entrypoint()
    def set_commission(
        self, ctx: CallContext, deal_type: str, rate_bps: int, recipient: str
    ) -> None:
        self._require_owner(ctx)
        self._validate_rate(rate_bps)
        self._storage.rates[deal_type] = rate_bps
        self._storage.recipients[deal_type] = require_address(recipient, allow_zero=True)
        self._emit("CommissionSet", deal_type=deal_type, rate_bps=rate_bps, recipient=recipient)
        logger.info("fees.commission_set", deal_type=deal_type, rate_bps=rate_bps)

    @entrypoint()
    def set_tenant_commission(
        self,
        ctx: CallContext,
        tenant_id: int,
        deal_type: str,
        rate_bps: int,
        recipient: str,
    ) -> None:
        self._require_owner(ctx)
        self._validate_rate(rate_bps)
        key = (tenant_id, deal_type)
        self._storage.tenant_rates[key] = rate_bps
        self._storage.tenant_recipients[key] = require_address(recipient, allow_zero=True)
        self._emit(
            "TenantCommissionSet",
            tenant_id=tenant_id,
            deal_type=deal_type,
            rate_bps=rate_bps,
            recipient=recipient,
        )
        logger.info(
            "fees.tenant_commission_set",
            tenant_id=tenant_id,
            deal_type=deal_type,
            rate_bps=rate_bps,
        )

    @entrypoint()
    def set_escrow_factory(self, ctx: CallContext, escrow_factory: str) -> None:
        self._require_owner(ctx)
        self._storage.escrow_factory = require_address(escrow_factory)
        self._emit("EscrowFactorySet", escrow_factory=escrow_factory)

    def _require_owner(self, ctx: CallContext) -> None:
        if ctx.sender != self._storage.owner:
            raise UnauthorizedError(ctx.sender, "configure fees")

    @staticmethod
    def _validate_rate(rate_bps: int) -> None:
        if not 0 <= rate_bps <= BASIS_POINTS:
            raise InvalidAmountError(f"Commission rate must be within 0..{BASIS_POINTS} bps")
