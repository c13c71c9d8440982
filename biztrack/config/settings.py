"""
Configuration Management for BizTrack

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The remote store connection values are only *defaults* - the values the
operator saves through the connection settings live in a small JSON file
(see services/storage/connection.py) and take precedence.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteStoreSettings(BaseSettings):
    """Remote spreadsheet store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BIZTRACK_REMOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="",
        description="Spreadsheet URL (the remote endpoint)"
    )
    access_key: str = Field(
        default="",
        description="Service account credentials JSON, or a path to it"
    )

    # Worksheet names within the spreadsheet
    clients_sheet_name: str = Field(
        default="clients",
        description="Name of the worksheet holding clients"
    )
    payments_sheet_name: str = Field(
        default="payments",
        description="Name of the worksheet holding payments"
    )
    expenses_sheet_name: str = Field(
        default="expenses",
        description="Name of the worksheet holding expenses"
    )


class LocalStoreSettings(BaseSettings):
    """Local-only storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BIZTRACK_LOCAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_file: str = Field(
        default="biztrack_data_v1.json",
        description="JSON file holding the whole ledger when no remote store is configured"
    )
    connection_file: str = Field(
        default="biztrack_connection.json",
        description="JSON file holding the saved remote connection values"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (financial insight paragraph only)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=512,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Presentation defaults consumed by the aggregation layer
    currency_symbol: str = Field(
        default="৳",
        description="Currency symbol used in generated text"
    )
    dashboard_months: int = Field(
        default=6,
        ge=1,
        le=24,
        description="Trailing months shown in the income/expense series"
    )
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many transactions the summary lists as recent"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def remote_store(self) -> RemoteStoreSettings:
        return RemoteStoreSettings()

    @property
    def local_store(self) -> LocalStoreSettings:
        return LocalStoreSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries describing failures. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("remote_store", "local_store", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
