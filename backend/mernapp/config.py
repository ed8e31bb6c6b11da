"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Cache and connection state are per-process; nothing here is shared across workers

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - DB_URI accepted alongside DATABASE_URL so existing deployments keep their env names
"""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INTERFACE_SCHEMA = str(
    Path(__file__).resolve().parent / "interface" / "mernapp.yaml",
)


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore",
        populate_by_name=True,
    )

    # Datastore
    database_url: str = Field(
        "sqlite+aiosqlite:///./mernapp.db",
        validation_alias=AliasChoices("DB_URI", "DATABASE_URL"),
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres URLs are postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    auto_create_tables: bool = True

    # Boot supervisor
    connect_retry_delay_seconds: float = 5.0

    # Server
    port: int = 3000
    host: str = "0.0.0.0"
    web_concurrency: int = 2
    environment: str = Field(
        "development", validation_alias=AliasChoices("APP_ENV", "ENVIRONMENT"),
    )

    # Pipeline
    interface_schema_path: str = DEFAULT_INTERFACE_SCHEMA
    cors_origins: list[str] = ["*"]
    session_cookie_name: str = "JSESSION"
    session_ttl_seconds: float = 24 * 60 * 60
    static_dir: str = "public"
    temp_dir: str = "temp"
    admin_token: str | None = None

    # Ephemeral cache (0 = entries never expire)
    cache_default_ttl_seconds: float = 0
    item_cache_ttl_seconds: float = 60

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
