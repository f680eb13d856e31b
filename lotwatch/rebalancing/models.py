"""Rebalancing Data Models."""

from dataclasses import dataclass, field
from typing import Optional

from lotwatch.rebalancing.config import TradeAction


@dataclass
class AllocationDrift:
    """Drift of one target symbol, in allocation percentage points."""
    symbol: str
    current_pct: float
    target_pct: float

    @property
    def deviation_pct(self) -> float:
        return abs(self.target_pct - self.current_pct)

    def exceeds(self, threshold_pct: float) -> bool:
        return self.deviation_pct > threshold_pct

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "current_pct": round(self.current_pct, 4),
            "target_pct": round(self.target_pct, 4),
            "deviation_pct": round(self.deviation_pct, 4),
        }


@dataclass
class RebalanceTrade:
    """Single trade in a rebalance plan."""
    symbol: str
    action: TradeAction
    quantity: float
    price: float
    value: float
    current_pct: float
    target_pct: float
    deviation_pct: float
    fee: float = 0.0
    estimated_realized_gain: Optional[float] = None  # sells only

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "action": self.action.value,
            "quantity": round(self.quantity, 6),
            "price": round(self.price, 4),
            "value": round(self.value, 2),
            "current_pct": round(self.current_pct, 4),
            "target_pct": round(self.target_pct, 4),
            "deviation_pct": round(self.deviation_pct, 4),
            "fee": round(self.fee, 2),
            "estimated_realized_gain": (
                None if self.estimated_realized_gain is None
                else round(self.estimated_realized_gain, 2)
            ),
        }


@dataclass
class RebalancePlan:
    """Complete rebalance plan. Proposed only; nothing is executed."""
    needed: bool = False
    total_value: float = 0.0
    threshold_pct: float = 0.0
    trades: list[RebalanceTrade] = field(default_factory=list)
    drifts: list[AllocationDrift] = field(default_factory=list)
    current_allocation: dict[str, float] = field(default_factory=dict)
    target_allocation: dict[str, float] = field(default_factory=dict)

    @property
    def overall_deviation(self) -> float:
        if not self.drifts:
            return 0.0
        return sum(d.deviation_pct for d in self.drifts) / len(self.drifts)

    @property
    def max_deviation(self) -> float:
        return max((d.deviation_pct for d in self.drifts), default=0.0)

    @property
    def trading_costs(self) -> float:
        return sum(t.fee for t in self.trades)

    @property
    def cost_breakdown(self) -> dict[str, float]:
        return {t.symbol: t.fee for t in self.trades}

    @property
    def total_buy_value(self) -> float:
        return sum(t.value for t in self.trades if t.action == TradeAction.BUY)

    @property
    def total_sell_value(self) -> float:
        return sum(t.value for t in self.trades if t.action == TradeAction.SELL)

    @property
    def estimated_realized_gain(self) -> float:
        return sum(t.estimated_realized_gain or 0.0 for t in self.trades)

    def drift_for(self, symbol: str) -> Optional[AllocationDrift]:
        for drift in self.drifts:
            if drift.symbol == symbol.upper():
                return drift
        return None

    def to_dict(self) -> dict:
        return {
            "needed": self.needed,
            "total_value": round(self.total_value, 2),
            "threshold_pct": self.threshold_pct,
            "overall_deviation": round(self.overall_deviation, 4),
            "max_deviation": round(self.max_deviation, 4),
            "trading_costs": round(self.trading_costs, 2),
            "cost_breakdown": {k: round(v, 2) for k, v in self.cost_breakdown.items()},
            "total_buy_value": round(self.total_buy_value, 2),
            "total_sell_value": round(self.total_sell_value, 2),
            "estimated_realized_gain": round(self.estimated_realized_gain, 2),
            "current_allocation": {k: round(v, 4) for k, v in self.current_allocation.items()},
            "target_allocation": dict(self.target_allocation),
            "trades": [t.to_dict() for t in self.trades],
        }
