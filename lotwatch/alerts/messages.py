"""Notification message templates.

Deterministic title and body text per alert type, rendered from the
evaluation payload.
"""

from datetime import datetime
from typing import Any, Callable

from lotwatch.alerts.config import AlertType
from lotwatch.alerts.models import AlertRule, TriggeredAlert

Renderer = Callable[[dict[str, Any]], tuple[str, str]]


def _price_target(p: dict[str, Any]) -> tuple[str, str]:
    return (
        "Price Target Alert",
        f"{p['symbol']} has reached your target price of ${p['target_price']:,.2f}",
    )


def _purchase_target(p: dict[str, Any]) -> tuple[str, str]:
    verb = "gained" if p["direction"] == "gain" else "lost"
    return (
        f"Alert: {p['symbol']}",
        f"{p['symbol']} has {verb} {abs(p['percentage_change']):.2f}% from your purchase price",
    )


def _portfolio_rebalance(p: dict[str, Any]) -> tuple[str, str]:
    return (
        "Portfolio Rebalance Alert",
        "Your portfolio allocation has deviated beyond your threshold. Consider rebalancing.",
    )


def _tax_optimization(p: dict[str, Any]) -> tuple[str, str]:
    return (
        "Tax Optimization Opportunity",
        f"Found potential tax-loss harvesting savings of ${p['projected_tax_savings']:,.2f}",
    )


def _risk_threshold(p: dict[str, Any]) -> tuple[str, str]:
    return (
        "Risk Threshold Alert",
        "Portfolio risk has exceeded your maximum drawdown threshold",
    )


def _market_sentiment(p: dict[str, Any]) -> tuple[str, str]:
    return (
        "Market Sentiment Alert",
        "Market sentiment has reached extreme levels",
    )


def _dca_reminder(p: dict[str, Any]) -> tuple[str, str]:
    return (
        "DCA Reminder",
        "Time for your regular dollar-cost averaging investment",
    )


TEMPLATES: dict[AlertType, Renderer] = {
    AlertType.PRICE_TARGET: _price_target,
    AlertType.PURCHASE_TARGET: _purchase_target,
    AlertType.PORTFOLIO_REBALANCE: _portfolio_rebalance,
    AlertType.TAX_OPTIMIZATION: _tax_optimization,
    AlertType.RISK_THRESHOLD: _risk_threshold,
    AlertType.MARKET_SENTIMENT: _market_sentiment,
    AlertType.DCA_REMINDER: _dca_reminder,
}


def render(alert_type: AlertType, payload: dict[str, Any]) -> tuple[str, str]:
    """Return (title, body) for an alert of ``alert_type``."""
    return TEMPLATES[alert_type](payload)


def build_triggered_alert(rule: AlertRule, payload: dict[str, Any], created_at: datetime) -> TriggeredAlert:
    title, body = render(rule.alert_type, payload)
    return TriggeredAlert(
        rule_id=rule.rule_id,
        owner_id=rule.owner_id,
        alert_type=rule.alert_type,
        title=title,
        message=body,
        category=rule.category,
        payload=dict(payload),
        created_at=created_at,
    )
