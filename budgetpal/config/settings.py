"""
Configuration Management for BudgetPal

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here. Each settings group has its own
environment prefix and is validated when first loaded.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///./budgetpal.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient store faults"
    )
    retry_max_wait_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Upper bound on the exponential wait between attempts"
    )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_in_memory(self) -> bool:
        """True for `sqlite://` and `sqlite:///:memory:` URLs."""
        return self.url in ("sqlite://", "sqlite:///:memory:")


class AuthSettings(BaseSettings):
    """Session token and password hashing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        extra="ignore"
    )

    secret_key: str = Field(
        ...,
        min_length=16,
        description="Key used to sign session tokens"
    )
    algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    session_ttl_minutes: int = Field(
        default=30 * 24 * 60,
        ge=1,
        description="Session lifetime in minutes"
    )
    bcrypt_rounds: int = Field(
        default=10,
        ge=4,
        le=16,
        description="bcrypt cost factor"
    )
    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum accepted password length"
    )

    @field_validator('algorithm')
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only symmetric HMAC algorithms are supported."""
        allowed = {"HS256", "HS384", "HS512"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported algorithm: {v}. Allowed: {sorted(allowed)}")
        return v.upper()


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

    # Validation thresholds
    max_expense_amount: float = Field(
        default=10_000_000.0,
        gt=0,
        description="Largest amount accepted for a single expense"
    )

    # Redirect targets
    home_path: str = Field(default="/")
    login_path: str = Field(default="/login")
    dashboard_path: str = Field(default="/dashboard")


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
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

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
    entries for the groups that failed. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("database", "auth", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
