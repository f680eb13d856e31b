"""Typed per-type rule configuration.

Each alert type has a frozen dataclass built from the rule at evaluation
time. A missing or malformed field raises ConfigurationError naming the
field, so a broken rule fails on its own without affecting others.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from lotwatch.alerts.config import DEFAULT_RULE_DEFAULTS, PriceDirection, RuleDefaults
from lotwatch.alerts.models import AlertRule
from lotwatch.errors import ConfigurationError
from lotwatch.rebalancing.drift import normalize_targets


def _number(
    rule: AlertRule,
    field: str,
    value: Any,
    default: Optional[float] = None,
    minimum: Optional[float] = None,
) -> float:
    if value is None or value == "":
        if default is None:
            raise ConfigurationError(
                f"{rule.alert_type.value} rule requires {field}", field=field, rule_id=rule.rule_id,
            )
        return float(default)
    if isinstance(value, bool):
        raise ConfigurationError(f"{field} must be a number", field=field, rule_id=rule.rule_id)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{field} must be a number, got {value!r}", field=field, rule_id=rule.rule_id,
        ) from None
    if minimum is not None and number < minimum:
        raise ConfigurationError(
            f"{field} must be >= {minimum}, got {number}", field=field, rule_id=rule.rule_id,
        )
    return number


def _symbol(rule: AlertRule) -> str:
    symbol = rule.symbol or rule.configuration.get("symbol")
    if not symbol or not str(symbol).strip():
        raise ConfigurationError(
            f"{rule.alert_type.value} rule requires symbol", field="symbol", rule_id=rule.rule_id,
        )
    return str(symbol).strip().upper()


@dataclass(frozen=True)
class PriceTargetConfig:
    """Fires once when the price reaches the target from the given side."""
    symbol: str
    target_price: float
    direction: PriceDirection

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "PriceTargetConfig":
        raw_direction = rule.direction or rule.configuration.get("direction")
        if not raw_direction:
            raise ConfigurationError(
                "price_target rule requires direction", field="direction", rule_id=rule.rule_id,
            )
        try:
            direction = PriceDirection(str(raw_direction).lower())
        except ValueError:
            raise ConfigurationError(
                f"direction must be 'above' or 'below', got {raw_direction!r}",
                field="direction", rule_id=rule.rule_id,
            ) from None
        return cls(
            symbol=_symbol(rule),
            target_price=_number(rule, "target_value", rule.target_value, minimum=0),
            direction=direction,
        )


@dataclass(frozen=True)
class PurchaseTargetConfig:
    """Fires once when the move from the purchase price reaches the target percent."""
    symbol: str
    target_pct: float
    purchase_price: Optional[float] = None

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "PurchaseTargetConfig":
        target = _number(rule, "target_value", rule.target_value)
        if target == 0:
            raise ConfigurationError(
                "target_value must be non-zero", field="target_value", rule_id=rule.rule_id,
            )
        raw_price = rule.configuration.get("purchase_price")
        purchase_price = None
        if raw_price is not None:
            purchase_price = _number(rule, "purchase_price", raw_price)
            if purchase_price <= 0:
                raise ConfigurationError(
                    "purchase_price must be positive", field="purchase_price", rule_id=rule.rule_id,
                )
        return cls(symbol=_symbol(rule), target_pct=target, purchase_price=purchase_price)


@dataclass(frozen=True)
class RebalanceRuleConfig:
    """Fires when any target symbol drifts past the threshold."""
    target_allocation: Mapping[str, float]
    threshold_pct: float

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "RebalanceRuleConfig":
        raw = rule.configuration.get("target_allocation")
        if not raw or not isinstance(raw, Mapping):
            raise ConfigurationError(
                "portfolio_rebalance rule requires target_allocation",
                field="target_allocation", rule_id=rule.rule_id,
            )
        try:
            targets = normalize_targets(raw)
        except ConfigurationError as exc:
            exc.rule_id = rule.rule_id
            raise
        threshold = _number(
            rule, "threshold", rule.configuration.get("threshold"),
            default=defaults.rebalance_threshold_pct, minimum=0,
        )
        return cls(target_allocation=targets, threshold_pct=threshold)


@dataclass(frozen=True)
class TaxRuleConfig:
    """Fires when projected harvest savings reach the minimum."""
    minimum_savings: float
    tax_rate: float

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "TaxRuleConfig":
        cfg = rule.configuration
        minimum = cfg.get("minimum_savings", cfg.get("minimum_loss"))
        rate = _number(rule, "tax_rate", cfg.get("tax_rate"), default=defaults.tax_rate, minimum=0)
        if rate > 1:
            raise ConfigurationError("tax_rate must be <= 1", field="tax_rate", rule_id=rule.rule_id)
        return cls(
            minimum_savings=_number(
                rule, "minimum_savings", minimum, default=defaults.tax_minimum_savings, minimum=0,
            ),
            tax_rate=rate,
        )


@dataclass(frozen=True)
class RiskRuleConfig:
    """Fires when the portfolio drawdown from invested capital exceeds the maximum."""
    max_drawdown_pct: float

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "RiskRuleConfig":
        value = rule.configuration.get("max_drawdown", rule.target_value)
        return cls(max_drawdown_pct=_number(
            rule, "max_drawdown", value, default=defaults.risk_max_drawdown_pct, minimum=0,
        ))


@dataclass(frozen=True)
class SentimentRuleConfig:
    """Fires when sentiment is at or beyond either extreme."""
    extreme_threshold: float

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "SentimentRuleConfig":
        threshold = _number(
            rule, "extreme_threshold", rule.configuration.get("extreme_threshold"),
            default=defaults.sentiment_extreme_threshold, minimum=0,
        )
        if threshold > 50:
            raise ConfigurationError(
                "extreme_threshold must be <= 50", field="extreme_threshold", rule_id=rule.rule_id,
            )
        return cls(extreme_threshold=threshold)


@dataclass(frozen=True)
class DcaRuleConfig:
    """Fires every ``interval_days``."""
    interval_days: float

    @classmethod
    def from_rule(cls, rule: AlertRule, defaults: RuleDefaults = DEFAULT_RULE_DEFAULTS) -> "DcaRuleConfig":
        interval = _number(
            rule, "interval_days", rule.configuration.get("interval_days"),
            default=defaults.dca_interval_days,
        )
        if interval <= 0:
            raise ConfigurationError(
                "interval_days must be positive", field="interval_days", rule_id=rule.rule_id,
            )
        return cls(interval_days=interval)
