"""Centralized settings for Lotwatch.

Uses pydantic-settings to load from environment variables (prefixed
LOTWATCH_) or a local .env file. Component config dataclasses are built
from these values by the composition root in lotwatch.service.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lotwatch settings loaded from environment variables."""

    # --- Tax-lot analytics ---
    harvest_tax_rate: float = 0.22
    short_term_rate: float = 0.32
    long_term_rate: float = 0.15
    loss_floor: float = 50.0
    harvest_threshold: float = 100.0
    large_loss_cutoff: float = 1000.0
    long_term_days: int = 365
    long_term_min_gain: float = 0.0
    short_term_pnl_threshold: float = 200.0
    wash_sale_window_days: int = 30
    annual_loss_deduction_limit: float = 3000.0

    # --- Rebalancing ---
    rebalance_threshold_pct: float = 5.0
    trading_fee_rate: float = 0.001

    # --- Alert rule defaults ---
    dca_interval_days: int = 7
    sentiment_extreme_threshold: float = 20.0
    risk_max_drawdown_pct: float = 20.0
    tax_minimum_savings: float = 100.0

    # --- Evaluation pass ---
    oracle_timeout_seconds: float = 5.0
    sink_timeout_seconds: float = 5.0
    max_workers: int = 8
    price_cache_ttl_seconds: Optional[float] = None
    block_on_overlap: bool = False
    pass_interval_seconds: float = 300.0

    # --- Risk analytics ---
    risk_free_rate: float = 0.05
    benchmark_symbol: str = "SPY"
    history_timeout_seconds: float = 5.0
    history_cache_ttl_seconds: Optional[float] = 900.0

    # --- Database ---
    database_url: str = "sqlite:///lotwatch.db"

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = {
        "env_prefix": "LOTWATCH_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
