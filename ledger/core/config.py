"""
Ledger configuration - environment-driven settings via pydantic-settings.

Every setting can be overridden with a ``LEDGER_`` prefixed environment variable
or a ``.env`` file in the working directory.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Runtime settings for the ledger engine and its adapters."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./data/ledger.db"
    database_echo: bool = False

    # Bank reconciliation matching
    match_date_tolerance_days: int = Field(default=3, ge=0)
    match_amount_tolerance: Decimal = Field(default=Decimal("0"), ge=0)

    # Depreciation
    declining_balance_factor: Decimal = Field(default=Decimal("2"), gt=0)

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v


@lru_cache
def get_settings() -> LedgerSettings:
    return LedgerSettings()
