"""Alert Rule Configuration.

Enums, type groupings, per-type defaults and the evaluator configuration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class AlertType(str, Enum):
    """Closed set of alert rule types."""
    PRICE_TARGET = "price_target"
    PURCHASE_TARGET = "purchase_target"
    PORTFOLIO_REBALANCE = "portfolio_rebalance"
    TAX_OPTIMIZATION = "tax_optimization"
    RISK_THRESHOLD = "risk_threshold"
    MARKET_SENTIMENT = "market_sentiment"
    DCA_REMINDER = "dca_reminder"


class PriceDirection(str, Enum):
    """Which side of the target a price rule fires on."""
    ABOVE = "above"
    BELOW = "below"


class NotificationCategory(str, Enum):
    """Category passed to the notification sink."""
    PRICE_ALERT = "price_alert"
    PORTFOLIO_ALERT = "portfolio_alert"
    TAX_ALERT = "tax_alert"
    RISK_ALERT = "risk_alert"
    MARKET_ALERT = "market_alert"
    DCA_REMINDER = "dca_reminder"


class RuleOutcome(str, Enum):
    """Result of evaluating one rule in a pass."""
    TRIGGERED = "triggered"
    NOT_TRIGGERED = "not_triggered"
    SUPPRESSED = "suppressed"
    FAILED = "failed"
    CONFLICT = "conflict"
    CANCELLED = "cancelled"


# One-shot rules deactivate on trigger; recurring rules stay active and
# record last_triggered_at.
ONE_SHOT_TYPES = frozenset({
    AlertType.PRICE_TARGET,
    AlertType.PURCHASE_TARGET,
    AlertType.PORTFOLIO_REBALANCE,
    AlertType.TAX_OPTIMIZATION,
    AlertType.RISK_THRESHOLD,
    AlertType.MARKET_SENTIMENT,
})
RECURRING_TYPES = frozenset({AlertType.DCA_REMINDER})

ALERT_CATEGORIES: dict[AlertType, NotificationCategory] = {
    AlertType.PRICE_TARGET: NotificationCategory.PRICE_ALERT,
    AlertType.PURCHASE_TARGET: NotificationCategory.PRICE_ALERT,
    AlertType.PORTFOLIO_REBALANCE: NotificationCategory.PORTFOLIO_ALERT,
    AlertType.TAX_OPTIMIZATION: NotificationCategory.TAX_ALERT,
    AlertType.RISK_THRESHOLD: NotificationCategory.RISK_ALERT,
    AlertType.MARKET_SENTIMENT: NotificationCategory.MARKET_ALERT,
    AlertType.DCA_REMINDER: NotificationCategory.DCA_REMINDER,
}


@dataclass(frozen=True)
class RuleDefaults:
    """Values used when a rule's configuration omits a field."""
    rebalance_threshold_pct: float = 5.0
    tax_minimum_savings: float = 100.0
    tax_rate: float = 0.22
    risk_max_drawdown_pct: float = 20.0
    sentiment_extreme_threshold: float = 20.0
    dca_interval_days: int = 7


@dataclass(frozen=True)
class AlertingConfig:
    """Evaluation pass configuration."""
    max_workers: int = 8
    oracle_timeout: Optional[float] = 5.0
    sentiment_timeout: Optional[float] = 5.0
    sink_timeout: Optional[float] = 5.0
    price_cache_ttl: Optional[float] = None
    block_on_overlap: bool = False
    defaults: RuleDefaults = field(default_factory=RuleDefaults)


DEFAULT_RULE_DEFAULTS = RuleDefaults()
DEFAULT_ALERTING_CONFIG = AlertingConfig()
