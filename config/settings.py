"""
Settings for the integration engine, read from the environment or .env.

Supabase credentials are required; every file-integration limit has a
default that can be overridden per deployment (e.g. PRICE_TOLERANCE=0.05).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """
    Integration engine settings.

    Field names map to upper-case environment variables
    (max_upload_mb -> MAX_UPLOAD_MB).
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

    # ===================
    # FILE INTEGRATION
    # ===================
    max_upload_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum accepted size for imported files, in MiB"
    )
    preview_rows: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Rows shown by the import preview"
    )
    notes_max_length: int = Field(
        default=500,
        ge=50,
        le=5000,
        description="Maximum length of free-text fields after sanitizing"
    )
    price_tolerance: float = Field(
        default=0.01,
        ge=0,
        le=1,
        description="Maximum price difference treated as equal when reconciling"
    )
    distance_tolerance: float = Field(
        default=0.1,
        ge=0,
        le=10,
        description="Maximum km difference treated as equal when reconciling"
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
        description="Frontend origins allowed by CORS, as a JSON list in the environment"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def max_upload_bytes(self) -> int:
        """Upload limit in bytes."""
        return self.max_upload_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """
    Settings are read once per process; get_settings.cache_clear() reloads them.

    Raises:
        ValidationError: If SUPABASE_URL or SUPABASE_KEY is missing, or a limit is out of range
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
