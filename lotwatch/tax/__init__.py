"""Tax-Lot Analytics.

Tax-loss harvesting opportunities, wash-sale risk, long-term hold
candidates, short-term position reviews and loss-offset estimates.

Example:
    from lotwatch.tax import TaxLotOptimizer

    optimizer = TaxLotOptimizer()
    opportunities = optimizer.harvest_opportunities(lots, rate=0.22, loss_floor=50)
"""

from lotwatch.tax.config import (
    DEFAULT_HARVESTING_CONFIG,
    DEFAULT_TAX_CONFIG,
    DEFAULT_WASH_SALE_CONFIG,
    HARVEST_STRATEGY_THRESHOLDS,
    HarvestingConfig,
    HarvestStrategy,
    HoldingPeriodConfig,
    LossOffsetConfig,
    OpportunityPriority,
    PositionReviewConfig,
    PositionStrategy,
    TaxConfig,
    WashSaleConfig,
)
from lotwatch.tax.models import (
    HarvestPlan,
    HarvestReport,
    LongTermHoldCandidate,
    LossOffsetEstimate,
    ProposedHarvest,
    RecommendedAction,
    ShortTermPosition,
    TaxLotOpportunity,
)
from lotwatch.tax.optimizer import TaxLotOptimizer
from lotwatch.tax.wash_sales import (
    InMemorySellHistory,
    SellHistorySource,
    SellRecord,
    WashSaleCheck,
    WashSaleChecker,
)

__all__ = [
    # Config
    "DEFAULT_HARVESTING_CONFIG",
    "DEFAULT_TAX_CONFIG",
    "DEFAULT_WASH_SALE_CONFIG",
    "HARVEST_STRATEGY_THRESHOLDS",
    "HarvestingConfig",
    "HarvestStrategy",
    "HoldingPeriodConfig",
    "LossOffsetConfig",
    "OpportunityPriority",
    "PositionReviewConfig",
    "PositionStrategy",
    "TaxConfig",
    "WashSaleConfig",
    # Models
    "HarvestPlan",
    "HarvestReport",
    "LongTermHoldCandidate",
    "LossOffsetEstimate",
    "ProposedHarvest",
    "RecommendedAction",
    "ShortTermPosition",
    "TaxLotOpportunity",
    # Wash sales
    "InMemorySellHistory",
    "SellHistorySource",
    "SellRecord",
    "WashSaleCheck",
    "WashSaleChecker",
    # Optimizer
    "TaxLotOptimizer",
]
