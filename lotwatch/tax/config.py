"""Tax-Lot Analytics Configuration.

Rates, loss thresholds, harvest strategies and configuration dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# Enums
# =============================================================================

class OpportunityPriority(str, Enum):
    """Priority attached to opportunities and recommended actions."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class HarvestStrategy(str, Enum):
    """How aggressively to harvest losses."""
    AGGRESSIVE = "aggressive"
    MODERATE = "moderate"
    CONSERVATIVE = "conservative"


class PositionStrategy(str, Enum):
    """Suggested handling of a short-term position with a large P&L."""
    PROFIT_TAKING = "profit_taking"
    LOSS_CUTTING = "loss_cutting"


# Minimum loss per lot for each harvest strategy
HARVEST_STRATEGY_THRESHOLDS: dict[HarvestStrategy, float] = {
    HarvestStrategy.AGGRESSIVE: 50.0,
    HarvestStrategy.MODERATE: 200.0,
    HarvestStrategy.CONSERVATIVE: 500.0,
}


# =============================================================================
# Configuration Dataclasses
# =============================================================================

@dataclass(frozen=True)
class HarvestingConfig:
    """Tax-loss harvesting thresholds.

    A lot whose unrealized loss exceeds ``loss_floor`` is reported; it is
    harvestable once the loss exceeds ``harvest_threshold`` and high
    priority above ``large_loss_cutoff``.
    """
    tax_rate: float = 0.22
    loss_floor: float = 50.0
    harvest_threshold: float = 100.0
    large_loss_cutoff: float = 1000.0


@dataclass(frozen=True)
class WashSaleConfig:
    """Wash sale window around a prospective sale."""
    lookback_days: int = 30
    lookforward_days: int = 30


@dataclass(frozen=True)
class HoldingPeriodConfig:
    """Short/long-term rates and the long-term hold analysis."""
    long_term_days: int = 365
    short_term_rate: float = 0.32
    long_term_rate: float = 0.15
    min_gain: float = 0.0

    @property
    def rate_delta(self) -> float:
        return self.short_term_rate - self.long_term_rate


@dataclass(frozen=True)
class PositionReviewConfig:
    """Thresholds for reviewing short-term positions."""
    pnl_threshold: float = 200.0
    take_profit_above: float = 500.0
    cut_loss_below: float = -500.0


@dataclass(frozen=True)
class LossOffsetConfig:
    """Capital loss offset rules."""
    annual_deduction_limit: float = 3000.0


@dataclass(frozen=True)
class TaxConfig:
    """Main tax-lot analytics configuration."""
    harvesting: HarvestingConfig = field(default_factory=HarvestingConfig)
    wash_sale: WashSaleConfig = field(default_factory=WashSaleConfig)
    holding_period: HoldingPeriodConfig = field(default_factory=HoldingPeriodConfig)
    position_review: PositionReviewConfig = field(default_factory=PositionReviewConfig)
    loss_offset: LossOffsetConfig = field(default_factory=LossOffsetConfig)


DEFAULT_HARVESTING_CONFIG = HarvestingConfig()
DEFAULT_WASH_SALE_CONFIG = WashSaleConfig()
DEFAULT_TAX_CONFIG = TaxConfig()
