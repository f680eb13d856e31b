"""Rebalance Planner.

Generates the trades that bring every target symbol whose allocation
drifted past the threshold back to its target weight.
"""

import logging
from typing import Callable, Mapping, Optional

from lotwatch.errors import DataUnavailableError
from lotwatch.logging_config import log_performance
from lotwatch.portfolio.models import Lot
from lotwatch.rebalancing.config import (
    DEFAULT_COST_CONFIG,
    DEFAULT_DRIFT_CONFIG,
    CostConfig,
    DriftConfig,
    TradeAction,
)
from lotwatch.rebalancing.drift import DriftMonitor, normalize_targets
from lotwatch.rebalancing.models import AllocationDrift, RebalancePlan, RebalanceTrade

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], Optional[float]]


class RebalancePlanner:
    """Plans rebalance trades for a set of valued lots.

    Example:
        planner = RebalancePlanner()
        plan = planner.plan(snapshot.lots, {"AAPL": 20, "MSFT": 30}, threshold_pct=5)
        if plan.needed:
            ...
    """

    def __init__(
        self,
        drift_config: Optional[DriftConfig] = None,
        cost_config: Optional[CostConfig] = None,
    ) -> None:
        self.drift_config = drift_config or DEFAULT_DRIFT_CONFIG
        self.cost_config = cost_config or DEFAULT_COST_CONFIG
        self._drift_monitor = DriftMonitor()

    @log_performance()
    def plan(
        self,
        lots: list[Lot],
        target_allocation: Mapping[str, object],
        threshold_pct: Optional[float] = None,
        price_lookup: Optional[PriceLookup] = None,
    ) -> RebalancePlan:
        """Plan trades for symbols whose deviation exceeds the threshold.

        Args:
            lots: Valued lots.
            target_allocation: Symbol -> target percent of portfolio value.
            threshold_pct: Deviation threshold in percentage points
                (strictly exceeded to trade). Defaults to config.
            price_lookup: Price for target symbols that are not held.

        Returns:
            RebalancePlan; ``needed`` is True iff any trade was generated.

        Raises:
            ConfigurationError: If a target percentage is invalid.
            DataUnavailableError: If the portfolio has no value, or a price
                is unavailable for a symbol that must be traded.
        """
        threshold = self.drift_config.threshold_pct if threshold_pct is None else threshold_pct
        targets = normalize_targets(target_allocation)

        values: dict[str, float] = {}
        quantities: dict[str, float] = {}
        costs: dict[str, float] = {}
        prices: dict[str, float] = {}
        for lot in lots:
            values[lot.symbol] = values.get(lot.symbol, 0.0) + lot.value
            quantities[lot.symbol] = quantities.get(lot.symbol, 0.0) + lot.quantity
            costs[lot.symbol] = costs.get(lot.symbol, 0.0) + lot.cost_total
            prices[lot.symbol] = lot.current_price

        total_value = sum(values.values())
        current = self._drift_monitor.current_allocation(values)
        drifts = self._drift_monitor.compute_drift(current, targets)

        plan = RebalancePlan(
            total_value=total_value,
            threshold_pct=threshold,
            drifts=drifts,
            current_allocation=current,
            target_allocation=targets,
        )

        for drift in drifts:
            if not drift.exceeds(threshold):
                continue
            price = prices.get(drift.symbol)
            if price is None and price_lookup is not None:
                price = price_lookup(drift.symbol)
            if price is None or price <= 0:
                raise DataUnavailableError(
                    f"No price to rebalance {drift.symbol}", source="price_oracle", key=drift.symbol,
                )
            plan.trades.append(self._build_trade(
                drift, price, total_value, values, quantities, costs,
            ))

        plan.needed = bool(plan.trades)
        logger.debug(
            "Rebalance plan: %d trades, overall deviation %.2f%%",
            len(plan.trades), plan.overall_deviation,
        )
        return plan

    def _build_trade(
        self,
        drift: AllocationDrift,
        price: float,
        total_value: float,
        values: dict[str, float],
        quantities: dict[str, float],
        costs: dict[str, float],
    ) -> RebalanceTrade:
        current_value = values.get(drift.symbol, 0.0)
        target_value = drift.target_pct / 100 * total_value
        trade_value = target_value - current_value
        quantity = abs(trade_value) / price
        action = TradeAction.BUY if trade_value > 0 else TradeAction.SELL

        realized: Optional[float] = None
        if action == TradeAction.SELL and quantities.get(drift.symbol):
            average_cost = costs[drift.symbol] / quantities[drift.symbol]
            realized = (price - average_cost) * quantity

        return RebalanceTrade(
            symbol=drift.symbol,
            action=action,
            quantity=quantity,
            price=price,
            value=abs(trade_value),
            current_pct=drift.current_pct,
            target_pct=drift.target_pct,
            deviation_pct=drift.deviation_pct,
            fee=abs(trade_value) * self.cost_config.fee_rate,
            estimated_realized_gain=realized,
        )
