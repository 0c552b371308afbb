from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from procurement.core.money import check_places


class Settings(BaseSettings):
    # App
    app_name: str = "Procurement Approvals"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./procurement.db"

    # Approval tiers
    tier2_threshold: Decimal = Decimal("1000.00")
    tier3_threshold: Decimal = Decimal("5000.00")
    money_places: int = 2

    # Optional YAML policy file (roles, actors, delegations, thresholds)
    policy_file: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False

    @field_validator("tier2_threshold", "tier3_threshold")
    @classmethod
    def _non_negative(cls, value: Decimal) -> Decimal:
        if not value.is_finite() or value < 0:
            raise ValueError("thresholds must be finite and non-negative")
        return value

    @field_validator("money_places")
    @classmethod
    def _supported_places(cls, value: int) -> int:
        return check_places(value)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PROCUREMENT_",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
