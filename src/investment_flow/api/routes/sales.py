"""Token sale read API.

Routes:
    GET /api/v1/sales                                 - All initialized sales
    GET /api/v1/sales/{address}                       - Sale snapshot
    GET /api/v1/sales/{address}/investors/{investor}  - One investor's position
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from investment_flow.api.deps import get_chain_dep
from investment_flow.contracts.chain import Chain
from investment_flow.contracts.sale import TokenSale
from investment_flow.domain.addresses import require_address
from investment_flow.domain.exceptions import NotInitializedError
from investment_flow.schemas.sale import InvestorPositionResponse, SaleResponse

router = APIRouter(prefix="/api/v1/sales", tags=["Sales"])


def _load_sale(chain: Chain, address: str) -> TokenSale:
    sale = chain.contract_at(address, TokenSale)
    if not sale.initialized:
        raise NotInitializedError(address)
    return sale


def _to_response(sale: TokenSale) -> SaleResponse:
    return SaleResponse(
        address=sale.address,
        total_payments=sale.all_total_payments(),
        **sale.sale_info()._asdict(),
    )


@router.get(
    "",
    response_model=list[SaleResponse],
    summary="List sales",
)
async def list_sales(chain: Chain = Depends(get_chain_dep)) -> list[SaleResponse]:
    """Every initialized sale on the served chain, in deployment order."""
    return [_to_response(s) for s in chain.contracts_of(TokenSale) if s.initialized]


@router.get(
    "/{address}",
    response_model=SaleResponse,
    summary="Get sale details",
)
async def get_sale(
    address: str,
    chain: Chain = Depends(get_chain_dep),
) -> SaleResponse:
    """Configuration, derived status and ledger totals of a sale."""
    return _to_response(_load_sale(chain, address))


@router.get(
    "/{address}/investors/{investor}",
    response_model=InvestorPositionResponse,
    summary="Get an investor's position in a sale",
)
async def get_investor_position(
    address: str,
    investor: str,
    chain: Chain = Depends(get_chain_dep),
) -> InvestorPositionResponse:
    """Whitelist membership, purchased and locked tokens, refundable payments."""
    sale = _load_sale(chain, address)
    investor = require_address(investor)
    return InvestorPositionResponse(
        sale=sale.address,
        investor=investor,
        whitelisted=sale.is_whitelisted(investor),
        participant=sale.is_participant(investor),
        purchased=sale.purchase_of(investor),
        locked=sale.locked_balance_of(investor),
        paid=sale.paid_amounts(investor),
    )
