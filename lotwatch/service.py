"""Composition root.

Builds every component from Settings and exposes the zero-argument
``run_pass()`` the scheduler drives, plus on-demand tax and rebalance
analysis for a single owner.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from lotwatch.alerts import (
    AlertingConfig,
    AlertRuleEvaluator,
    EvaluationScheduler,
    NotificationSink,
    PassSummary,
    RuleDefaults,
    RuleStore,
)
from lotwatch.analytics import RiskMetricsCalculator
from lotwatch.market import PassPriceCache, PriceHistorySource, PriceOracle, SentimentSource
from lotwatch.portfolio import HoldingsSource, PortfolioSnapshot, PortfolioSnapshotter
from lotwatch.rebalancing import CostConfig, DriftConfig, RebalancePlan, RebalancePlanner
from lotwatch.settings import Settings, get_settings
from lotwatch.tax import (
    HarvestingConfig,
    HarvestReport,
    HoldingPeriodConfig,
    LossOffsetConfig,
    PositionReviewConfig,
    SellHistorySource,
    TaxConfig,
    TaxLotOptimizer,
    WashSaleChecker,
    WashSaleConfig,
)

logger = logging.getLogger(__name__)


def build_tax_config(settings: Settings) -> TaxConfig:
    return TaxConfig(
        harvesting=HarvestingConfig(
            tax_rate=settings.harvest_tax_rate,
            loss_floor=settings.loss_floor,
            harvest_threshold=settings.harvest_threshold,
            large_loss_cutoff=settings.large_loss_cutoff,
        ),
        wash_sale=WashSaleConfig(
            lookback_days=settings.wash_sale_window_days,
            lookforward_days=settings.wash_sale_window_days,
        ),
        holding_period=HoldingPeriodConfig(
            long_term_days=settings.long_term_days,
            short_term_rate=settings.short_term_rate,
            long_term_rate=settings.long_term_rate,
            min_gain=settings.long_term_min_gain,
        ),
        position_review=PositionReviewConfig(pnl_threshold=settings.short_term_pnl_threshold),
        loss_offset=LossOffsetConfig(annual_deduction_limit=settings.annual_loss_deduction_limit),
    )


def build_alerting_config(settings: Settings) -> AlertingConfig:
    return AlertingConfig(
        max_workers=settings.max_workers,
        oracle_timeout=settings.oracle_timeout_seconds,
        sentiment_timeout=settings.oracle_timeout_seconds,
        sink_timeout=settings.sink_timeout_seconds,
        price_cache_ttl=settings.price_cache_ttl_seconds,
        block_on_overlap=settings.block_on_overlap,
        defaults=RuleDefaults(
            rebalance_threshold_pct=settings.rebalance_threshold_pct,
            tax_minimum_savings=settings.tax_minimum_savings,
            tax_rate=settings.harvest_tax_rate,
            risk_max_drawdown_pct=settings.risk_max_drawdown_pct,
            sentiment_extreme_threshold=settings.sentiment_extreme_threshold,
            dca_interval_days=settings.dca_interval_days,
        ),
    )


class EvaluationService:
    """Wires stores, sources, analytics and the evaluator together.

    Example:
        service = EvaluationService(store, oracle, holdings, sink)
        summary = service.run_pass()
        report = service.tax_report("owner-1")
    """

    def __init__(
        self,
        store: RuleStore,
        oracle: PriceOracle,
        holdings: HoldingsSource,
        sink: NotificationSink,
        sentiment: Optional[SentimentSource] = None,
        sell_history: Optional[SellHistorySource] = None,
        price_history: Optional[PriceHistorySource] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.oracle = oracle
        self.holdings = holdings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        tax_config = build_tax_config(self.settings)
        risk = None
        if price_history is not None:
            risk = RiskMetricsCalculator(
                price_history,
                risk_free_rate=self.settings.risk_free_rate,
                benchmark_symbol=self.settings.benchmark_symbol,
                timeout_seconds=self.settings.history_timeout_seconds,
                cache_ttl_seconds=self.settings.history_cache_ttl_seconds,
            )
        self.optimizer = TaxLotOptimizer(
            config=tax_config,
            wash_sales=WashSaleChecker(sell_history, tax_config.wash_sale),
            risk=risk,
        )
        self.planner = RebalancePlanner(
            drift_config=DriftConfig(threshold_pct=self.settings.rebalance_threshold_pct),
            cost_config=CostConfig(fee_rate=self.settings.trading_fee_rate),
        )
        self.evaluator = AlertRuleEvaluator(
            store,
            oracle,
            holdings,
            sink,
            sentiment=sentiment,
            optimizer=self.optimizer,
            planner=self.planner,
            config=build_alerting_config(self.settings),
            clock=self._clock,
        )

    def run_pass(self) -> PassSummary:
        return self.evaluator.run_pass()

    def cancel(self) -> None:
        self.evaluator.cancel()

    def scheduler(
        self,
        interval_seconds: Optional[float] = None,
        on_summary: Optional[Callable[[PassSummary], None]] = None,
    ) -> EvaluationScheduler:
        return EvaluationScheduler(
            self,
            interval_seconds=interval_seconds or self.settings.pass_interval_seconds,
            on_summary=on_summary,
        )

    # =========================================================================
    # On-demand analysis
    # =========================================================================

    def snapshot(self, owner_id: str) -> PortfolioSnapshot:
        prices = PassPriceCache(self.oracle, timeout_seconds=self.settings.oracle_timeout_seconds)
        return PortfolioSnapshotter(self.holdings, prices.get).snapshot(owner_id, as_of=self._clock())

    def tax_report(self, owner_id: str, rate: Optional[float] = None) -> HarvestReport:
        snapshot = self.snapshot(owner_id)
        return self.optimizer.analyze(snapshot.lots, owner_id=owner_id, as_of=snapshot.as_of, rate=rate)

    def rebalance_plan(
        self,
        owner_id: str,
        target_allocation: Mapping[str, float],
        threshold_pct: Optional[float] = None,
    ) -> RebalancePlan:
        prices = PassPriceCache(self.oracle, timeout_seconds=self.settings.oracle_timeout_seconds)
        snapshot = PortfolioSnapshotter(self.holdings, prices.get).snapshot(owner_id, as_of=self._clock())
        return self.planner.plan(snapshot.lots, target_allocation, threshold_pct, price_lookup=prices.price)
