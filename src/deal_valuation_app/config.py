from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEAL_VALUATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Deal Valuation Engine"

    # IRR solver
    irr_initial_guess: float = 0.1
    irr_tolerance: float = Field(1e-6, gt=0)
    irr_rate_tolerance: float = Field(1e-12, gt=0)
    irr_max_iterations: int = Field(100, ge=1)
    irr_lower_bound: float = Field(-0.99, gt=-1)
    irr_upper_bound: float = 10.0

    # Sample statistics
    default_outlier_threshold: float = Field(2.0, gt=0)

    # Relative gap tolerated between EV and market cap + debt - cash
    enterprise_value_tolerance: float = Field(0.05, ge=0)


@lru_cache
def get_settings() -> Settings:
    return Settings()
