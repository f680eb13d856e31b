"""Tax-Lot Analytics Data Models.

Harvest opportunities, long-term hold candidates, short-term position
reviews, the aggregated harvest report, harvest plans and loss-offset
estimates. All of these are ephemeral and recomputed on demand.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from lotwatch.tax.config import HarvestStrategy, OpportunityPriority, PositionStrategy


@dataclass
class TaxLotOpportunity:
    """A lot trading below its cost basis."""
    symbol: str
    current_price: float
    cost_basis: float
    quantity: float
    unrealized_loss: float  # positive magnitude
    tax_savings: float
    wash_sale_window_start: datetime
    wash_sale_window_end: datetime
    wash_sale_risk: bool = False
    wash_sale_checked: bool = False
    priority: OpportunityPriority = OpportunityPriority.MEDIUM
    harvestable: bool = False
    acquired_at: Optional[datetime] = None
    holding_period_days: int = 0

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "current_price": round(self.current_price, 4),
            "cost_basis": round(self.cost_basis, 4),
            "quantity": self.quantity,
            "unrealized_loss": round(self.unrealized_loss, 2),
            "tax_savings": round(self.tax_savings, 2),
            "wash_sale_risk": self.wash_sale_risk,
            "wash_sale_checked": self.wash_sale_checked,
            "wash_sale_window": {
                "start": self.wash_sale_window_start.isoformat(),
                "end": self.wash_sale_window_end.isoformat(),
            },
            "priority": self.priority.value,
            "harvestable": self.harvestable,
            "holding_period_days": self.holding_period_days,
        }


@dataclass
class LongTermHoldCandidate:
    """A short-term gain that becomes cheaper to realize once long-term."""
    symbol: str
    current_price: float
    unrealized_gain: float
    holding_days: int
    days_to_long_term: int
    rate_delta: float
    potential_savings: float

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "current_price": round(self.current_price, 4),
            "unrealized_gain": round(self.unrealized_gain, 2),
            "holding_days": self.holding_days,
            "days_to_long_term": self.days_to_long_term,
            "rate_delta": round(self.rate_delta, 4),
            "potential_savings": round(self.potential_savings, 2),
        }


@dataclass
class ShortTermPosition:
    """Review of a short-term position with a large unrealized P&L."""
    symbol: str
    strategy: PositionStrategy
    current_value: float
    unrealized_pnl: float
    recommendation: str
    volatility: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "strategy": self.strategy.value,
            "current_value": round(self.current_value, 2),
            "unrealized_pnl": round(self.unrealized_pnl, 2),
            "recommendation": self.recommendation,
            "volatility": None if self.volatility is None else round(self.volatility, 4),
        }


@dataclass
class RecommendedAction:
    """An action summarizing one kind of opportunity."""
    action: str
    priority: OpportunityPriority
    description: str
    potential_benefit: float = 0.0

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "priority": self.priority.value,
            "description": self.description,
            "potential_benefit": round(self.potential_benefit, 2),
        }


@dataclass
class HarvestReport:
    """Tax-lot analysis for one owner."""
    owner_id: str
    as_of: datetime
    tax_rate: float
    opportunities: list[TaxLotOpportunity] = field(default_factory=list)
    long_term_holds: list[LongTermHoldCandidate] = field(default_factory=list)
    short_term_positions: list[ShortTermPosition] = field(default_factory=list)
    recommended_actions: list[RecommendedAction] = field(default_factory=list)
    limitations: list[str] = field(default_factory=list)

    @property
    def total_unrealized_losses(self) -> float:
        return sum(o.unrealized_loss for o in self.opportunities)

    @property
    def harvestable_losses(self) -> float:
        return sum(o.unrealized_loss for o in self.opportunities if o.harvestable)

    @property
    def projected_tax_savings(self) -> float:
        return self.harvestable_losses * self.tax_rate

    @property
    def harvestable(self) -> list[TaxLotOpportunity]:
        return [o for o in self.opportunities if o.harvestable]

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "as_of": self.as_of.isoformat(),
            "tax_rate": self.tax_rate,
            "total_unrealized_losses": round(self.total_unrealized_losses, 2),
            "harvestable_losses": round(self.harvestable_losses, 2),
            "projected_tax_savings": round(self.projected_tax_savings, 2),
            "opportunities": [o.to_dict() for o in self.opportunities],
            "long_term_holds": [c.to_dict() for c in self.long_term_holds],
            "short_term_positions": [p.to_dict() for p in self.short_term_positions],
            "recommended_actions": [a.to_dict() for a in self.recommended_actions],
            "limitations": list(self.limitations),
        }


@dataclass
class ProposedHarvest:
    """A sell the owner could place to realize a loss."""
    symbol: str
    quantity: float
    price: float
    realized_loss: float
    tax_benefit: float

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "price": round(self.price, 4),
            "realized_loss": round(self.realized_loss, 2),
            "tax_benefit": round(self.tax_benefit, 2),
        }


@dataclass
class HarvestPlan:
    """Proposed harvest sells for a strategy. Nothing is executed."""
    strategy: HarvestStrategy
    min_loss: float
    proposed: list[ProposedHarvest] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def total_realized_loss(self) -> float:
        return sum(p.realized_loss for p in self.proposed)

    @property
    def total_tax_benefit(self) -> float:
        return sum(p.tax_benefit for p in self.proposed)

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "min_loss": self.min_loss,
            "proposed": [p.to_dict() for p in self.proposed],
            "total_realized_loss": round(self.total_realized_loss, 2),
            "total_tax_benefit": round(self.total_tax_benefit, 2),
            "warnings": list(self.warnings),
        }


@dataclass
class LossOffsetEstimate:
    """What a realized capital loss is worth."""
    loss: float
    short_term_savings: float
    long_term_savings: float
    deductible_this_year: float
    carryforward: float

    def to_dict(self) -> dict:
        return {
            "loss": round(self.loss, 2),
            "short_term_savings": round(self.short_term_savings, 2),
            "long_term_savings": round(self.long_term_savings, 2),
            "deductible_this_year": round(self.deductible_this_year, 2),
            "carryforward": round(self.carryforward, 2),
        }
