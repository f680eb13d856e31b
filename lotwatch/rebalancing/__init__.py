"""Portfolio Rebalancing.

Allocation drift against target weights and the trades that correct it.
"""

from lotwatch.rebalancing.config import (
    DEFAULT_COST_CONFIG,
    DEFAULT_DRIFT_CONFIG,
    CostConfig,
    DriftConfig,
    TradeAction,
)
from lotwatch.rebalancing.drift import DriftMonitor, normalize_targets
from lotwatch.rebalancing.models import AllocationDrift, RebalancePlan, RebalanceTrade
from lotwatch.rebalancing.planner import RebalancePlanner

__all__ = [
    # Config
    "DEFAULT_COST_CONFIG",
    "DEFAULT_DRIFT_CONFIG",
    "CostConfig",
    "DriftConfig",
    "TradeAction",
    # Models
    "AllocationDrift",
    "RebalancePlan",
    "RebalanceTrade",
    # Drift
    "DriftMonitor",
    "normalize_targets",
    # Planner
    "RebalancePlanner",
]
