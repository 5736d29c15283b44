"""Service configuration loaded from the environment (``LEDGER_`` prefix)."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "production", "test"] = "development"
    service_name: str = "Blue Traders API"
    version: str = "1.0.0"

    host: str = "0.0.0.0"
    port: int = 10000

    # Withdrawal policy
    currency: str = "USD"
    min_withdrawal_amount: Decimal = Decimal("10")
    # Upper bound for amounts and balance overrides
    max_amount: Decimal = Decimal("1000000000000")
    instant_methods: list[str] = Field(default_factory=lambda: ["mobile_money"])
    completion_delay_seconds: float = 3.0

    # Set-balance is open unless a token is configured
    admin_token: Optional[str] = None

    seed_balances: dict[str, Decimal] = Field(
        default_factory=lambda: {"demo-001": Decimal("10000")}
    )

    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
