"""Portfolio data models.

Holding records as stored upstream, valued lots, and the per-owner
portfolio snapshot built once per evaluation pass.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from lotwatch.portfolio.config import LONG_TERM_DAYS, HoldingPeriod


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class HoldingRecord:
    """A purchase lot as recorded for an owner, without a price."""
    owner_id: str
    symbol: str
    quantity: float
    cost_basis: float  # per unit
    acquired_at: datetime


@dataclass(frozen=True)
class Lot:
    """A valued lot. Recomputed each pass, never mutated."""
    symbol: str
    quantity: float
    cost_basis: float  # per unit
    acquired_at: datetime
    current_price: float
    change_24h: float = 0.0

    @property
    def value(self) -> float:
        return self.current_price * self.quantity

    @property
    def cost_total(self) -> float:
        return self.cost_basis * self.quantity

    @property
    def unrealized_pnl(self) -> float:
        return (self.current_price - self.cost_basis) * self.quantity

    @property
    def unrealized_pnl_pct(self) -> float:
        if self.cost_total <= 0:
            return 0.0
        return self.unrealized_pnl / self.cost_total * 100

    def holding_period_days(self, as_of: Optional[datetime] = None) -> int:
        as_of = _as_utc(as_of or _utc_now())
        return max(0, (as_of - _as_utc(self.acquired_at)).days)

    def holding_period(self, as_of: Optional[datetime] = None) -> HoldingPeriod:
        if self.holding_period_days(as_of) >= LONG_TERM_DAYS:
            return HoldingPeriod.LONG_TERM
        return HoldingPeriod.SHORT_TERM

    def is_long_term(self, as_of: Optional[datetime] = None) -> bool:
        return self.holding_period(as_of) == HoldingPeriod.LONG_TERM

    @classmethod
    def from_record(cls, record: HoldingRecord, price: float, change_24h: float = 0.0) -> "Lot":
        return cls(
            symbol=record.symbol.upper(),
            quantity=record.quantity,
            cost_basis=record.cost_basis,
            acquired_at=record.acquired_at,
            current_price=price,
            change_24h=change_24h,
        )

    def to_dict(self, as_of: Optional[datetime] = None) -> dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "cost_basis": round(self.cost_basis, 4),
            "current_price": round(self.current_price, 4),
            "value": round(self.value, 2),
            "unrealized_pnl": round(self.unrealized_pnl, 2),
            "holding_period_days": self.holding_period_days(as_of),
            "holding_period": self.holding_period(as_of).value,
        }


@dataclass
class PortfolioSnapshot:
    """An owner's valued lots at a point in time.

    Lots whose price lookup failed are left out of every aggregate and
    listed in ``excluded_symbols``.
    """
    owner_id: str
    as_of: datetime = field(default_factory=_utc_now)
    lots: list[Lot] = field(default_factory=list)
    excluded_symbols: list[str] = field(default_factory=list)

    @property
    def total_value(self) -> float:
        return sum(lot.value for lot in self.lots)

    @property
    def total_invested(self) -> float:
        return sum(lot.cost_total for lot in self.lots)

    @property
    def unrealized_pnl(self) -> float:
        return self.total_value - self.total_invested

    @property
    def symbols(self) -> list[str]:
        return sorted({lot.symbol for lot in self.lots})

    def value_by_symbol(self) -> dict[str, float]:
        values: dict[str, float] = {}
        for lot in self.lots:
            values[lot.symbol] = values.get(lot.symbol, 0.0) + lot.value
        return values

    def quantity_by_symbol(self) -> dict[str, float]:
        quantities: dict[str, float] = {}
        for lot in self.lots:
            quantities[lot.symbol] = quantities.get(lot.symbol, 0.0) + lot.quantity
        return quantities

    def price_of(self, symbol: str) -> Optional[float]:
        for lot in self.lots:
            if lot.symbol == symbol.upper():
                return lot.current_price
        return None

    def average_cost(self, symbol: str) -> Optional[float]:
        """Quantity-weighted cost basis per unit, or None if not held."""
        symbol = symbol.upper()
        held = [lot for lot in self.lots if lot.symbol == symbol]
        quantity = sum(lot.quantity for lot in held)
        if quantity <= 0:
            return None
        return sum(lot.cost_total for lot in held) / quantity

    def to_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "as_of": self.as_of.isoformat(),
            "total_value": round(self.total_value, 2),
            "total_invested": round(self.total_invested, 2),
            "unrealized_pnl": round(self.unrealized_pnl, 2),
            "excluded_symbols": list(self.excluded_symbols),
            "lots": [lot.to_dict(self.as_of) for lot in self.lots],
        }
