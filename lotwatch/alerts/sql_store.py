"""SQLAlchemy rule store.

Trigger claims are a conditional UPDATE on (id, version, active), so
evaluators in different processes sharing one database still produce
exactly one trigger per rule state.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from lotwatch.alerts.config import AlertType
from lotwatch.alerts.models import AlertRule
from lotwatch.alerts.store import RuleStore
from lotwatch.db.models import AlertRuleRow
from lotwatch.errors import StateConflictError

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_rule(row: AlertRuleRow) -> AlertRule:
    return AlertRule(
        rule_id=row.id,
        owner_id=row.owner_id,
        alert_type=AlertType(row.alert_type),
        name=row.name or "",
        symbol=row.symbol,
        target_value=row.target_value,
        direction=row.direction,
        configuration=dict(row.configuration or {}),
        active=bool(row.active),
        last_triggered_at=_aware(row.last_triggered_at),
        trigger_count=row.trigger_count or 0,
        version=row.version or 0,
    )


class SqlRuleStore(RuleStore):
    """Rule store backed by the alert_rules table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def load_active(self) -> list[AlertRule]:
        with self.session_factory() as session:
            rows = session.execute(
                select(AlertRuleRow).where(AlertRuleRow.active.is_(True)).order_by(AlertRuleRow.id)
            ).scalars().all()
            return [_to_rule(row) for row in rows]

    def get(self, rule_id: str) -> Optional[AlertRule]:
        with self.session_factory() as session:
            row = session.get(AlertRuleRow, rule_id)
            return _to_rule(row) if row is not None else None

    def save(self, rule: AlertRule) -> AlertRule:
        with self.session_factory() as session:
            row = session.get(AlertRuleRow, rule.rule_id) or AlertRuleRow(id=rule.rule_id)
            self._apply(row, rule)
            session.add(row)
            session.commit()
        return rule

    @staticmethod
    def _apply(row: AlertRuleRow, rule: AlertRule) -> None:
        row.owner_id = rule.owner_id
        row.alert_type = rule.alert_type.value
        row.name = rule.name
        row.symbol = rule.symbol
        row.target_value = None if rule.target_value is None else float(rule.target_value)
        row.direction = rule.direction
        row.configuration = dict(rule.configuration)
        row.active = rule.active
        row.last_triggered_at = rule.last_triggered_at
        row.trigger_count = rule.trigger_count
        row.version = rule.version

    def claim_trigger(self, rule: AlertRule, triggered_at: datetime) -> AlertRule:
        updated = rule.triggered(triggered_at)
        with self.session_factory() as session:
            result = session.execute(
                update(AlertRuleRow)
                .where(
                    AlertRuleRow.id == rule.rule_id,
                    AlertRuleRow.version == rule.version,
                    AlertRuleRow.active.is_(True),
                )
                .values(
                    active=updated.active,
                    last_triggered_at=updated.last_triggered_at,
                    trigger_count=AlertRuleRow.trigger_count + 1,
                    version=AlertRuleRow.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                raise StateConflictError(rule.rule_id, rule.version)
            session.commit()
        logger.debug("Claimed trigger for rule %s at version %d", rule.rule_id, rule.version)
        return updated
