"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "CourtDesk"
    debug: bool = True
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://courtdesk:courtdesk@db:5432/courtdesk"
    database_echo: bool = False

    # Clubs
    timezone: str = "Europe/Istanbul"
    default_role_id: str = "member"

    # Provider API keys are re-read from the store after this many seconds
    api_key_cache_ttl_seconds: int = 300

    model_config = {"env_prefix": "CD_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
