"""Rebalancing Configuration."""

from dataclasses import dataclass
from enum import Enum


class TradeAction(str, Enum):
    """Direction of a rebalance trade."""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class DriftConfig:
    """Drift threshold in allocation percentage points."""
    threshold_pct: float = 5.0


@dataclass(frozen=True)
class CostConfig:
    """Trading cost model: a flat fee rate on traded value."""
    fee_rate: float = 0.001


DEFAULT_DRIFT_CONFIG = DriftConfig()
DEFAULT_COST_CONFIG = CostConfig()
