from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client settings with validation"""

    # Service config
    SERVICE_NAME: str = Field(default="stockledger", description="Name used in log entries")
    SERVICE_VERSION: str = Field(default="0.1.0", description="Client version")

    # Backend API
    API_BASE_URL: str = Field(
        default="http://localhost:5000/api", description="Inventory/sales backend base URL"
    )
    API_TOKEN: str | None = Field(
        default=None, description="Bearer token of the current session, if any"
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=15.0, gt=0, le=300, description="Per-request timeout in seconds"
    )
    READ_RETRY_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Attempts for idempotent GET requests"
    )

    # Paging
    INVENTORY_PAGE_SIZE: int = Field(
        default=100, ge=1, le=10000, description="Page size when loading a warehouse's stock"
    )
    LOTS_PAGE_SIZE: int = Field(
        default=500, ge=1, le=10000, description="Page size when loading lots for selection"
    )

    # Payments
    BALANCE_EPSILON: Decimal = Field(
        default=Decimal("0.001"),
        ge=0,
        le=Decimal("0.01"),
        description="Rounding tolerance when comparing an amount with a balance due",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v_upper

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
