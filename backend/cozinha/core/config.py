"""Application configuration using pydantic-settings.

All environment variables are read through the settings object rather than
os.getenv() scattered across modules.
"""

from decimal import Decimal
from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./cozinha.db"
    database_echo: bool = False

    # Security
    secret_key: str = DEFAULT_SECRET_KEY
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:5173,http://localhost:8080"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # Stock-vs-demand classification: shortfall at or above this share of
    # the demand is critical, below it is low.
    stock_critical_shortfall_ratio: Decimal = Decimal("0.5")

    # Subscription gating
    plan_limits_enabled: bool = True

    currency_symbol: str = "R$"

    @field_validator("stock_critical_shortfall_ratio")
    @classmethod
    def validate_shortfall_ratio(cls, v: Decimal) -> Decimal:
        if v <= 0 or v > 1:
            raise ValueError("stock_critical_shortfall_ratio must be in (0, 1]")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to run outside debug mode with an unsafe secret key."""
        import warnings

        if self.secret_key == DEFAULT_SECRET_KEY:
            if not self.debug:
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            warnings.warn(
                "Using default SECRET_KEY is insecure! Set SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        elif not self.debug and len(self.secret_key) < 32:
            raise ValueError(
                f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                f"(current length: {len(self.secret_key)})."
            )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
