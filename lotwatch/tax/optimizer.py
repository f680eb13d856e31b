"""Tax-Lot Optimizer.

Finds harvestable losses, short-term gains worth holding until they turn
long-term, and short-term positions with large swings. Output is a pure
function of the lots, the as-of time and the configuration.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from lotwatch.analytics.risk import RiskMetricsCalculator
from lotwatch.logging_config import log_performance
from lotwatch.portfolio.models import Lot
from lotwatch.tax.config import (
    DEFAULT_TAX_CONFIG,
    HARVEST_STRATEGY_THRESHOLDS,
    HarvestStrategy,
    OpportunityPriority,
    PositionStrategy,
    TaxConfig,
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
from lotwatch.tax.wash_sales import NO_SELL_HISTORY, WashSaleCheck, WashSaleChecker

logger = logging.getLogger(__name__)

WASH_SALE_WARNING = "Potential wash sale for {symbol}: consider waiting {days} days before harvesting"


class TaxLotOptimizer:
    """Tax-lot analytics over a set of valued lots.

    Example:
        optimizer = TaxLotOptimizer(wash_sales=WashSaleChecker(sell_history))
        report = optimizer.analyze(snapshot.lots, owner_id="owner-1")
        report.projected_tax_savings
    """

    def __init__(
        self,
        config: Optional[TaxConfig] = None,
        wash_sales: Optional[WashSaleChecker] = None,
        risk: Optional[RiskMetricsCalculator] = None,
    ) -> None:
        self.config = config or DEFAULT_TAX_CONFIG
        self.wash_sales = wash_sales or WashSaleChecker(config=self.config.wash_sale)
        self.risk = risk

    # =========================================================================
    # Harvesting
    # =========================================================================

    def harvest_opportunities(
        self,
        lots: list[Lot],
        rate: Optional[float] = None,
        loss_floor: Optional[float] = None,
        owner_id: str = "",
        as_of: Optional[datetime] = None,
        limitations: Optional[list[str]] = None,
    ) -> list[TaxLotOpportunity]:
        """Find lots whose unrealized loss exceeds the loss floor.

        Args:
            lots: Valued lots.
            rate: Tax rate applied to the loss (defaults to config).
            loss_floor: Minimum loss to report (defaults to config).
            owner_id: Owner whose sell history is checked for wash sales.
            as_of: Evaluation time (defaults to now, UTC).
            limitations: If given, receives a note when wash sale risk
                could not be checked.

        Returns:
            Opportunities sorted by unrealized loss descending, then symbol.
        """
        cfg = self.config.harvesting
        rate = cfg.tax_rate if rate is None else rate
        loss_floor = cfg.loss_floor if loss_floor is None else loss_floor
        as_of = as_of or datetime.now(timezone.utc)
        window_start, window_end = self.wash_sales.window(as_of)

        checks: dict[str, WashSaleCheck] = {}
        opportunities: list[TaxLotOpportunity] = []

        for lot in lots:
            unrealized = (lot.cost_basis - lot.current_price) * lot.quantity
            if unrealized <= 0 or unrealized <= loss_floor:
                continue

            check = checks.get(lot.symbol)
            if check is None:
                check = checks[lot.symbol] = self.wash_sales.check(owner_id, lot.symbol, as_of)

            opportunities.append(TaxLotOpportunity(
                symbol=lot.symbol,
                current_price=lot.current_price,
                cost_basis=lot.cost_basis,
                quantity=lot.quantity,
                unrealized_loss=unrealized,
                tax_savings=unrealized * rate,
                wash_sale_window_start=window_start,
                wash_sale_window_end=window_end,
                wash_sale_risk=check.risk,
                wash_sale_checked=check.checked,
                priority=(
                    OpportunityPriority.HIGH if unrealized > cfg.large_loss_cutoff
                    else OpportunityPriority.MEDIUM
                ),
                harvestable=unrealized > cfg.harvest_threshold,
                acquired_at=lot.acquired_at,
                holding_period_days=lot.holding_period_days(as_of),
            ))

        if limitations is not None and any(not c.checked for c in checks.values()):
            if NO_SELL_HISTORY not in limitations:
                limitations.append(NO_SELL_HISTORY)

        opportunities.sort(key=lambda o: (-o.unrealized_loss, o.symbol, o.acquired_at or as_of))
        return opportunities

    # =========================================================================
    # Holding period
    # =========================================================================

    def long_term_candidates(
        self,
        lots: list[Lot],
        as_of: Optional[datetime] = None,
    ) -> list[LongTermHoldCandidate]:
        """Short-term lots with a gain that would be taxed less once long-term."""
        cfg = self.config.holding_period
        as_of = as_of or datetime.now(timezone.utc)
        candidates: list[LongTermHoldCandidate] = []

        for lot in lots:
            gain = lot.unrealized_pnl
            days = lot.holding_period_days(as_of)
            if gain <= cfg.min_gain or days >= cfg.long_term_days:
                continue
            candidates.append(LongTermHoldCandidate(
                symbol=lot.symbol,
                current_price=lot.current_price,
                unrealized_gain=gain,
                holding_days=days,
                days_to_long_term=cfg.long_term_days - days,
                rate_delta=cfg.rate_delta,
                potential_savings=gain * cfg.rate_delta,
            ))

        candidates.sort(key=lambda c: (c.days_to_long_term, c.symbol))
        return candidates

    def short_term_positions(
        self,
        lots: list[Lot],
        as_of: Optional[datetime] = None,
    ) -> list[ShortTermPosition]:
        """Short-term lots whose unrealized P&L exceeds the review threshold."""
        cfg = self.config.position_review
        long_term_days = self.config.holding_period.long_term_days
        as_of = as_of or datetime.now(timezone.utc)
        positions: list[ShortTermPosition] = []
        volatility: dict[str, Optional[float]] = {}

        for lot in lots:
            pnl = lot.unrealized_pnl
            if abs(pnl) <= cfg.pnl_threshold or lot.holding_period_days(as_of) >= long_term_days:
                continue

            if pnl > cfg.take_profit_above:
                recommendation = "Consider taking partial profits"
            elif pnl < cfg.cut_loss_below:
                recommendation = "Consider cutting losses or averaging down"
            else:
                recommendation = "Monitor position closely"

            if lot.symbol not in volatility:
                volatility[lot.symbol] = self._volatility(lot.symbol)

            positions.append(ShortTermPosition(
                symbol=lot.symbol,
                strategy=PositionStrategy.PROFIT_TAKING if pnl > 0 else PositionStrategy.LOSS_CUTTING,
                current_value=lot.value,
                unrealized_pnl=pnl,
                recommendation=recommendation,
                volatility=volatility[lot.symbol],
            ))

        positions.sort(key=lambda p: (-abs(p.unrealized_pnl), p.symbol))
        return positions

    def _volatility(self, symbol: str) -> Optional[float]:
        if self.risk is None:
            return None
        metrics = self.risk.calculate(symbol)
        return metrics.volatility if metrics.available else None

    # =========================================================================
    # Report
    # =========================================================================

    @log_performance()
    def analyze(
        self,
        lots: list[Lot],
        owner_id: str = "",
        as_of: Optional[datetime] = None,
        rate: Optional[float] = None,
    ) -> HarvestReport:
        """Build the full tax-lot report for an owner's lots."""
        as_of = as_of or datetime.now(timezone.utc)
        rate = self.config.harvesting.tax_rate if rate is None else rate

        report = HarvestReport(owner_id=owner_id, as_of=as_of, tax_rate=rate)
        report.opportunities = self.harvest_opportunities(
            lots, rate=rate, owner_id=owner_id, as_of=as_of, limitations=report.limitations,
        )
        report.long_term_holds = self.long_term_candidates(lots, as_of)
        report.short_term_positions = self.short_term_positions(lots, as_of)
        if report.short_term_positions and self.risk is None:
            report.limitations.append("volatility not computed: price history unavailable")

        if report.harvestable:
            report.recommended_actions.append(RecommendedAction(
                action="tax_loss_harvesting",
                priority=OpportunityPriority.HIGH,
                description=(
                    f"Harvest {len(report.harvestable)} lot(s) with "
                    f"${report.harvestable_losses:,.2f} in unrealized losses"
                ),
                potential_benefit=report.projected_tax_savings,
            ))
        if report.long_term_holds:
            report.recommended_actions.append(RecommendedAction(
                action="long_term_hold",
                priority=OpportunityPriority.MEDIUM,
                description=(
                    f"Hold {len(report.long_term_holds)} lot(s) until they qualify "
                    "for long-term rates"
                ),
                potential_benefit=sum(c.potential_savings for c in report.long_term_holds),
            ))

        logger.debug(
            "Tax analysis for %s: %d opportunities, %.2f projected savings",
            owner_id, len(report.opportunities), report.projected_tax_savings,
        )
        return report

    def plan_harvest(
        self,
        report: HarvestReport,
        strategy: HarvestStrategy = HarvestStrategy.MODERATE,
    ) -> HarvestPlan:
        """Propose harvest sells for a strategy without executing anything.

        Opportunities at wash-sale risk are left out of the proposal and
        reported as warnings.
        """
        min_loss = HARVEST_STRATEGY_THRESHOLDS[strategy]
        plan = HarvestPlan(strategy=strategy, min_loss=min_loss)
        lookback = self.wash_sales.config.lookback_days

        for opp in report.opportunities:
            if opp.unrealized_loss <= min_loss:
                continue
            if opp.wash_sale_risk:
                plan.warnings.append(WASH_SALE_WARNING.format(symbol=opp.symbol, days=lookback))
                continue
            plan.proposed.append(ProposedHarvest(
                symbol=opp.symbol,
                quantity=opp.quantity,
                price=opp.current_price,
                realized_loss=opp.unrealized_loss,
                tax_benefit=opp.unrealized_loss * report.tax_rate,
            ))

        return plan

    def estimate_loss_offset(self, loss: float) -> LossOffsetEstimate:
        """Estimate the value of realizing ``loss`` (a positive magnitude)."""
        loss = abs(loss)
        hp = self.config.holding_period
        limit = self.config.loss_offset.annual_deduction_limit
        return LossOffsetEstimate(
            loss=loss,
            short_term_savings=loss * hp.short_term_rate,
            long_term_savings=loss * hp.long_term_rate,
            deductible_this_year=min(loss, limit),
            carryforward=max(0.0, loss - limit),
        )
