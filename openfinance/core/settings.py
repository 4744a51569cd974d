"""Configuration and environment settings for OpenFinance Sync."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for OpenFinance Sync."""

    environment: str = "development"
    primary_backend: str = "sql"
    database_url: str = "sqlite:///transactions.db"
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_table: str = "transactions"
    notion_token: str | None = None
    notion_database_id: str | None = None
    notion_version: str = "2022-06-28"
    notion_base_url: str = "https://api.notion.com/v1/"
    notion_timeout: float = 10.0
    category_fallback: str = "Other"
    month_timezone: str = "UTC"
    log_level: str = "INFO"
    log_file: str | None = "logs/openfinance.log"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def is_development(self) -> bool:
        """Whether backend error details may be exposed to API callers."""
        return self.environment.lower() == "development"


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
