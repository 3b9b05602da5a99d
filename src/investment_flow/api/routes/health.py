"""Health check endpoint.

Verifies connectivity to the audit database and reports the shared chain,
returns structured status. Used by Docker healthchecks and load balancers.
"""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import text

from investment_flow import __version__
from investment_flow.infrastructure.chain_registry import get_chain
from investment_flow.logging_config import get_logger
from investment_flow.schemas.escrow import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check() -> HealthResponse:
    """Check connectivity to the audit database and the chain runtime."""
    db_status = "unknown"
    chain_status = "unknown"
    contracts = 0

    try:
        from investment_flow.infrastructure.database.engine import _get_engine

        engine = _get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    try:
        chain = get_chain()
        contracts = chain.contract_count
        chain_status = "healthy"
    except Exception as exc:
        chain_status = f"unhealthy: {exc}"
        logger.error("health.chain_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and chain_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        chain=chain_status,
        contracts=contracts,
    )
