"""
Retail Marketing Dashboard
Centralized Configuration Management

Pydantic settings with environment variable support. Every reporting constant
that used to be hard-coded in the report handlers (exchange rate, attribution
lookback, fetch timeout) lives in ReportingSettings.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Managed PostgreSQL Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="retail_dashboard", description="Database name")
    user: str = Field(default="dashboard", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL, asyncpg unless an explicit URL is configured"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class SecuritySettings(BaseSettings):
    """Dashboard Authentication Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    jwt_secret_key: SecretStr = Field(default="jwt-secret-change-me", alias="JWT_SECRET_KEY", description="JWT secret key")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM", description="JWT algorithm")
    jwt_expiration_hours: int = Field(default=24, alias="JWT_EXPIRATION_HOURS", description="JWT expiration in hours")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class ReportingSettings(BaseSettings):
    """Report Aggregation Configuration"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    mxn_to_eur_rate: float = Field(default=0.047, description="Static MXN to EUR exchange rate")
    attribution_lookback_days: int = Field(
        default=90,
        ge=0,
        description="Max days between an appointment and a later order for attribution",
    )
    fetch_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout per source fetch")
    default_window_days: int = Field(default=30, ge=1, description="Default report window length")
    history_days: int = Field(default=365, ge=1, description="Span used for historical daily averages")
    vip_threshold_eur: float = Field(default=2000.0, description="Minimum EUR lifetime value for VIP customers")
    top_limit: int = Field(default=10, ge=1, description="Rows in top-N tables")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="retail-dashboard", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
