"""FastAPI application entry point for the investment flow read API.

Lifecycle:
    1. Startup: Initialize logging, the audit database and the shared chain.
    2. Running: Serve read-only views of sales, escrows and the audit log.
    3. Shutdown: Dispose of the database engine and drop the chain.

Run with:
    uvicorn investment_flow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from investment_flow import __version__
from investment_flow.config import get_settings
from investment_flow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from investment_flow.contracts.chain import Chain


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Initialize database
    from investment_flow.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize the chain runtime, optionally with a sample offering
    from investment_flow.infrastructure.chain_registry import close_chain, init_chain

    chain = init_chain()
    if settings.chain_seed == "demo":
        await _seed_chain(chain, settings.chain_seed_tenant_id)

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    close_chain()
    logger.info("app.stopped")


async def _seed_chain(chain: Chain, tenant_id: str) -> None:
    """Deploy the demo offering and record its events in the audit log."""
    from investment_flow.infrastructure.chain_seed import seed_demo_offering
    from investment_flow.infrastructure.database.engine import get_session_factory
    from investment_flow.services.audit_service import AuditService

    seed_demo_offering(chain)
    async with get_session_factory()() as session:
        await AuditService(session).record_chain_events(chain.events, tenant_id=tenant_id)
        await session.commit()


def create_app() -> FastAPI:
    """Application factory - creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Investment Flow",
        description=(
            "Read API over investment escrows, token sales and their audit log."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from investment_flow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from investment_flow.api.routes.audit import router as audit_router
    from investment_flow.api.routes.escrows import router as escrows_router
    from investment_flow.api.routes.health import router as health_router
    from investment_flow.api.routes.sales import router as sales_router

    app.include_router(health_router)
    app.include_router(sales_router)
    app.include_router(escrows_router)
    app.include_router(audit_router)

    return app


# The app instance used by Uvicorn
app = create_app()
