"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup, so a malformed value fails fast with a clear error message.

Usage:
    from investment_flow.config import get_settings
    settings = get_settings()
    print(settings.escrow_admin_action_window_seconds)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DAY = 24 * 60 * 60


class Settings(BaseSettings):
    """Central configuration for the investment flow."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Database (audit log) ---
    database_url: str = (
        "postgresql+asyncpg://investment:investment_dev"
        "@localhost:5432/investment_flow"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- API Authentication ---
    # HS256 bearer tokens; subject = wallet address, tenant_id claim scopes audit reads
    auth_jwt_secret: str = "dev-only-secret-change-me-before-deploying-0001"
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_issuer: str = "investment-flow"
    auth_token_ttl_seconds: int = 3600

    # --- Escrow Defaults ---
    escrow_admin_action_window_seconds: int = 7 * DAY
    escrow_expiration_seconds: int = 30 * DAY

    # --- Sale Defaults ---
    sale_max_whitelist_batch: int = 100
    fee_deal_type: str = "token_sale"

    # --- Served Chain ---
    # "demo" deploys a sample offering into the API's chain at startup
    chain_seed: Literal["none", "demo"] = "none"
    chain_seed_tenant_id: str = "demo"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_sqlite(self) -> bool:
        """SQLite URLs do not accept connection pool sizing arguments."""
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
