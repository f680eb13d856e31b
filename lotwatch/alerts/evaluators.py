"""Rule evaluators.

One evaluator per alert type, dispatched through a registry keyed by the
closed AlertType enumeration. Evaluators are pure decisions: they read
the pass context and return an Evaluation, never touching rule state.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from lotwatch.alerts.config import DEFAULT_RULE_DEFAULTS, AlertType, PriceDirection, RuleDefaults
from lotwatch.alerts.context import EvaluationContext
from lotwatch.alerts.models import AlertRule
from lotwatch.alerts.rules import (
    DcaRuleConfig,
    PriceTargetConfig,
    PurchaseTargetConfig,
    RebalanceRuleConfig,
    RiskRuleConfig,
    SentimentRuleConfig,
    TaxRuleConfig,
)
from lotwatch.errors import ConfigurationError
from lotwatch.rebalancing.planner import RebalancePlanner
from lotwatch.tax.optimizer import TaxLotOptimizer

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    """Decision for one rule, with the figures behind it."""
    triggered: bool
    payload: dict[str, Any] = field(default_factory=dict)


class RuleEvaluator(ABC):
    """Decides whether a rule of one type fires."""

    alert_type: AlertType

    def __init__(self, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> None:
        self.defaults = defaults

    @abstractmethod
    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        """Evaluate ``rule`` against the pass context.

        Raises:
            ConfigurationError: If the rule is malformed.
            DataUnavailableError: If required data could not be fetched.
        """


class PriceTargetEvaluator(RuleEvaluator):
    alert_type = AlertType.PRICE_TARGET

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = PriceTargetConfig.from_rule(rule, self.defaults)
        quote = ctx.price(cfg.symbol)
        if cfg.direction == PriceDirection.ABOVE:
            hit = quote.price >= cfg.target_price
        else:
            hit = quote.price <= cfg.target_price
        return Evaluation(hit, {
            "symbol": cfg.symbol,
            "current_price": quote.price,
            "target_price": cfg.target_price,
            "direction": cfg.direction.value,
            "change_24h": quote.change_24h,
        })


class PurchaseTargetEvaluator(RuleEvaluator):
    """Move from purchase price, using the owner's average cost when none is configured."""

    alert_type = AlertType.PURCHASE_TARGET

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = PurchaseTargetConfig.from_rule(rule, self.defaults)
        purchase_price = cfg.purchase_price
        if purchase_price is None:
            purchase_price = ctx.snapshot(rule.owner_id).average_cost(cfg.symbol)
            if purchase_price is None or purchase_price <= 0:
                raise ConfigurationError(
                    f"No purchase_price configured and {cfg.symbol} is not held",
                    field="purchase_price", rule_id=rule.rule_id,
                )

        quote = ctx.price(cfg.symbol)
        change_pct = (quote.price - purchase_price) / purchase_price * 100
        return Evaluation(abs(change_pct) >= abs(cfg.target_pct), {
            "symbol": cfg.symbol,
            "current_price": quote.price,
            "purchase_price": purchase_price,
            "alert_target": cfg.target_pct,
            "percentage_change": round(change_pct, 4),
            "direction": "gain" if change_pct > 0 else "loss",
        })


class RebalanceEvaluator(RuleEvaluator):
    alert_type = AlertType.PORTFOLIO_REBALANCE

    def __init__(self, planner: RebalancePlanner, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> None:
        super().__init__(defaults)
        self.planner = planner

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = RebalanceRuleConfig.from_rule(rule, self.defaults)
        snapshot = ctx.snapshot(rule.owner_id)
        plan = self.planner.plan(
            snapshot.lots, cfg.target_allocation, cfg.threshold_pct, price_lookup=ctx.price_or_none,
        )
        return Evaluation(plan.needed, {
            "threshold": cfg.threshold_pct,
            "overall_deviation": round(plan.overall_deviation, 4),
            "max_deviation": round(plan.max_deviation, 4),
            "drifted_symbols": [t.symbol for t in plan.trades],
            "trade_count": len(plan.trades),
            "trading_costs": round(plan.trading_costs, 2),
            "excluded_symbols": list(snapshot.excluded_symbols),
        })


class TaxOptimizationEvaluator(RuleEvaluator):
    alert_type = AlertType.TAX_OPTIMIZATION

    def __init__(self, optimizer: TaxLotOptimizer, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> None:
        super().__init__(defaults)
        self.optimizer = optimizer

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = TaxRuleConfig.from_rule(rule, self.defaults)
        snapshot = ctx.snapshot(rule.owner_id)
        report = self.optimizer.analyze(
            snapshot.lots, owner_id=rule.owner_id, as_of=ctx.as_of, rate=cfg.tax_rate,
        )
        savings = report.projected_tax_savings
        return Evaluation(savings > 0 and savings >= cfg.minimum_savings, {
            "projected_tax_savings": round(savings, 2),
            "harvestable_losses": round(report.harvestable_losses, 2),
            "total_unrealized_losses": round(report.total_unrealized_losses, 2),
            "minimum_savings": cfg.minimum_savings,
            "tax_rate": cfg.tax_rate,
            "opportunity_count": len(report.opportunities),
            "wash_sale_risk_symbols": sorted({o.symbol for o in report.opportunities if o.wash_sale_risk}),
            "limitations": list(report.limitations),
        })


class RiskThresholdEvaluator(RuleEvaluator):
    """Drawdown of current value from invested capital."""

    alert_type = AlertType.RISK_THRESHOLD

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = RiskRuleConfig.from_rule(rule, self.defaults)
        snapshot = ctx.snapshot(rule.owner_id)
        invested = snapshot.total_invested
        current = snapshot.total_value
        drawdown = 0.0
        if invested > 0:
            drawdown = max(0.0, (invested - current) / invested * 100)
        return Evaluation(drawdown > cfg.max_drawdown_pct, {
            "drawdown_pct": round(drawdown, 4),
            "max_drawdown": cfg.max_drawdown_pct,
            "total_invested": round(invested, 2),
            "total_value": round(current, 2),
        })


class MarketSentimentEvaluator(RuleEvaluator):
    alert_type = AlertType.MARKET_SENTIMENT

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = SentimentRuleConfig.from_rule(rule, self.defaults)
        score = ctx.sentiment()
        threshold = cfg.extreme_threshold
        extreme: Optional[str] = None
        if score <= threshold:
            extreme = "fear"
        elif score >= 100 - threshold:
            extreme = "greed"
        return Evaluation(extreme is not None, {
            "sentiment_score": score,
            "extreme_threshold": threshold,
            "extreme": extreme,
        })


class DcaReminderEvaluator(RuleEvaluator):
    alert_type = AlertType.DCA_REMINDER

    def evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> Evaluation:
        cfg = DcaRuleConfig.from_rule(rule, self.defaults)
        last = rule.last_triggered_at
        if last is None:
            return Evaluation(True, {"interval_days": cfg.interval_days, "last_triggered_at": None})
        elapsed = ctx.as_of - last
        return Evaluation(elapsed >= timedelta(days=cfg.interval_days), {
            "interval_days": cfg.interval_days,
            "last_triggered_at": last.isoformat(),
            "days_since_last": round(elapsed.total_seconds() / 86400, 4),
        })


def default_evaluators(
    optimizer: Optional[TaxLotOptimizer] = None,
    planner: Optional[RebalancePlanner] = None,
    defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS,
) -> dict[AlertType, RuleEvaluator]:
    """Build the evaluator registry covering every AlertType."""
    evaluators: list[RuleEvaluator] = [
        PriceTargetEvaluator(defaults),
        PurchaseTargetEvaluator(defaults),
        RebalanceEvaluator(planner or RebalancePlanner(), defaults),
        TaxOptimizationEvaluator(optimizer or TaxLotOptimizer(), defaults),
        RiskThresholdEvaluator(defaults),
        MarketSentimentEvaluator(defaults),
        DcaReminderEvaluator(defaults),
    ]
    return {e.alert_type: e for e in evaluators}
