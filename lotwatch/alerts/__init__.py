"""Alert Rule Evaluation.

Heterogeneous user-defined alert rules evaluated in periodic passes
against live market and portfolio state, with at-most-once triggers
and notification delivery through a sink.

Example:
    from lotwatch.alerts import (
        AlertRule, AlertRuleEvaluator, AlertType, InMemoryRuleStore, InMemorySink,
    )

    store = InMemoryRuleStore([
        AlertRule(
            owner_id="owner-1",
            alert_type=AlertType.PRICE_TARGET,
            symbol="BTC",
            target_value=50000.0,
            direction="above",
        ),
    ])
    evaluator = AlertRuleEvaluator(store, oracle, holdings, InMemorySink())
    summary = evaluator.run_pass()
    summary.triggered_count
"""

from lotwatch.alerts.config import (
    ALERT_CATEGORIES,
    DEFAULT_ALERTING_CONFIG,
    DEFAULT_RULE_DEFAULTS,
    ONE_SHOT_TYPES,
    RECURRING_TYPES,
    AlertingConfig,
    AlertType,
    NotificationCategory,
    PriceDirection,
    RuleDefaults,
    RuleOutcome,
)
from lotwatch.alerts.context import EvaluationContext
from lotwatch.alerts.engine import AlertRuleEvaluator
from lotwatch.alerts.evaluators import Evaluation, RuleEvaluator, default_evaluators
from lotwatch.alerts.messages import build_triggered_alert, render
from lotwatch.alerts.models import AlertRule, PassSummary, RuleResult, TriggeredAlert
from lotwatch.alerts.rules import (
    DcaRuleConfig,
    PriceTargetConfig,
    PurchaseTargetConfig,
    RebalanceRuleConfig,
    RiskRuleConfig,
    SentimentRuleConfig,
    TaxRuleConfig,
)
from lotwatch.alerts.scheduler import EvaluationScheduler
from lotwatch.alerts.sink import InMemorySink, Notification, NotificationSink
from lotwatch.alerts.sql_store import SqlRuleStore
from lotwatch.alerts.store import InMemoryRuleStore, RuleStore

__all__ = [
    # Config
    "ALERT_CATEGORIES",
    "DEFAULT_ALERTING_CONFIG",
    "DEFAULT_RULE_DEFAULTS",
    "ONE_SHOT_TYPES",
    "RECURRING_TYPES",
    "AlertingConfig",
    "AlertType",
    "NotificationCategory",
    "PriceDirection",
    "RuleDefaults",
    "RuleOutcome",
    # Models
    "AlertRule",
    "PassSummary",
    "RuleResult",
    "TriggeredAlert",
    # Rule configuration
    "DcaRuleConfig",
    "PriceTargetConfig",
    "PurchaseTargetConfig",
    "RebalanceRuleConfig",
    "RiskRuleConfig",
    "SentimentRuleConfig",
    "TaxRuleConfig",
    # Evaluation
    "AlertRuleEvaluator",
    "Evaluation",
    "EvaluationContext",
    "RuleEvaluator",
    "build_triggered_alert",
    "default_evaluators",
    "render",
    # Stores
    "InMemoryRuleStore",
    "RuleStore",
    "SqlRuleStore",
    # Sinks
    "InMemorySink",
    "Notification",
    "NotificationSink",
    # Scheduling
    "EvaluationScheduler",
]
