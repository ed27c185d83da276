"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # IMPORT PIPELINE
    # ===================
    import_stage_chunk_size: int = Field(
        default=400,
        ge=1,
        le=5000,
        description="Import items inserted per request while staging"
    )
    import_commit_chunk_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Staged items iterated per chunk while committing"
    )
    mrm_skip_rows: int = Field(
        default=7,
        ge=0,
        le=100,
        description="Non-data rows above the first MRM product row"
    )
    fuzzy_match_threshold: float = Field(
        default=0.4,
        ge=0,
        le=1,
        description="Default cutoff for image-to-row suggestions (lower is stricter)"
    )
    import_skip_unchanged_rows: bool = Field(
        default=False,
        description=(
            "Skip product writes when the row hash matches the last commit; "
            "needs products.import_row_hash (scripts/sql/add_import_row_hash.sql)"
        )
    )

    # ===================
    # FILE DOWNLOADS
    # ===================
    download_timeout_seconds: int = Field(
        default=60,
        ge=1,
        le=600,
        description="Timeout for fetching supplier files"
    )
    max_download_bytes: int = Field(
        default=25 * 1024 * 1024,
        ge=1024,
        description="Largest supplier file accepted"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to call the API (JSON list in env)"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
