"""Application configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings are loaded in this priority order (highest to lowest):
    1. Environment variables
    2. .env file (for local development)
    3. Default values

    For local development, copy .env.example to .env and fill in your values.
    For production, set environment variables directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Application
    # =========================================================================
    app_name: str = "eCFR Chapter Analytics API"
    debug: bool = False

    # =========================================================================
    # Database
    # =========================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/ecfr.db",
        description="Async SQLAlchemy connection URL for the title record store",
    )

    # =========================================================================
    # CORS
    # =========================================================================
    cors_origins: list[str] = ["http://localhost:3000"]

    # =========================================================================
    # API Settings
    # =========================================================================
    api_v1_prefix: str = "/api/v1"

    # =========================================================================
    # eCFR upstream
    # =========================================================================
    # No API key is required by ecfr.gov.
    ecfr_base_url: str = Field(
        default="https://www.ecfr.gov",
        description="Base URL of the eCFR API host",
    )
    ecfr_timeout: float = Field(
        default=60.0,
        description="Per-request timeout for eCFR calls, in seconds",
    )
    # 1 keeps per-part fetches strictly sequential.
    ecfr_part_concurrency: int = Field(
        default=1,
        ge=1,
        description="Maximum number of per-part eCFR requests in flight",
    )
    # 0 loads every top-level agency.
    ecfr_agencies_limit: int = Field(
        default=0,
        ge=0,
        description="Number of top-level agencies kept by load-agencies",
    )


settings = Settings()
