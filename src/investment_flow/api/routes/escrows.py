"""Investment escrow read API.

Routes:
    GET /api/v1/escrows            - All initialized escrows
    GET /api/v1/escrows/{address}  - Escrow snapshot with refund eligibility
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from investment_flow.api.deps import get_chain_dep
from investment_flow.contracts.chain import Chain
from investment_flow.contracts.escrow import InvestmentEscrow
from investment_flow.domain.exceptions import NotInitializedError
from investment_flow.schemas.escrow import EscrowResponse

router = APIRouter(prefix="/api/v1/escrows", tags=["Escrows"])


def _to_response(escrow: InvestmentEscrow) -> EscrowResponse:
    return EscrowResponse(
        address=escrow.address,
        can_refund=escrow.can_refund(),
        allowed_events=escrow.allowed_events(),
        **escrow.info()._asdict(),
    )


@router.get(
    "",
    response_model=list[EscrowResponse],
    summary="List escrows",
)
async def list_escrows(chain: Chain = Depends(get_chain_dep)) -> list[EscrowResponse]:
    return [_to_response(e) for e in chain.contracts_of(InvestmentEscrow) if e.initialized]


@router.get(
    "/{address}",
    response_model=EscrowResponse,
    summary="Get escrow details",
)
async def get_escrow(
    address: str,
    chain: Chain = Depends(get_chain_dep),
) -> EscrowResponse:
    """Deposit, decision and deadlines of one escrow."""
    escrow = chain.contract_at(address, InvestmentEscrow)
    if not escrow.initialized:
        raise NotInitializedError(address)
    return _to_response(escrow)
