"""Rule stores.

The store is the single source of truth for rule state. Every state
transition goes through ``claim_trigger``, a compare-and-swap on the
rule's version, so two evaluators racing on the same rule produce
exactly one trigger.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional

from lotwatch.alerts.models import AlertRule
from lotwatch.errors import StateConflictError

logger = logging.getLogger(__name__)


class RuleStore(ABC):
    """Persistence contract for alert rules."""

    @abstractmethod
    def load_active(self) -> list[AlertRule]:
        """Return all active rules."""

    @abstractmethod
    def get(self, rule_id: str) -> Optional[AlertRule]:
        """Return a fresh copy of the rule, or None if it no longer exists."""

    @abstractmethod
    def save(self, rule: AlertRule) -> AlertRule:
        """Insert or replace a rule as-is (used outside evaluation)."""

    @abstractmethod
    def claim_trigger(self, rule: AlertRule, triggered_at: datetime) -> AlertRule:
        """Record a trigger if the stored rule is still at ``rule.version``.

        One-shot rules are deactivated, recurring rules record
        ``last_triggered_at``; both increment trigger_count and version.

        Returns:
            The rule state after the transition.

        Raises:
            StateConflictError: If the rule changed since it was read or is
                no longer active.
        """


class InMemoryRuleStore(RuleStore):
    """Thread-safe in-memory rule store."""

    def __init__(self, rules: Optional[Iterable[AlertRule]] = None) -> None:
        self._lock = threading.Lock()
        self._rules: dict[str, AlertRule] = {}
        for rule in rules or []:
            self.save(rule)

    def load_active(self) -> list[AlertRule]:
        with self._lock:
            return [r.copy() for r in self._rules.values() if r.active]

    def get(self, rule_id: str) -> Optional[AlertRule]:
        with self._lock:
            rule = self._rules.get(rule_id)
            return rule.copy() if rule else None

    def all(self) -> list[AlertRule]:
        with self._lock:
            return [r.copy() for r in self._rules.values()]

    def save(self, rule: AlertRule) -> AlertRule:
        with self._lock:
            self._rules[rule.rule_id] = rule.copy()
        return rule

    def claim_trigger(self, rule: AlertRule, triggered_at: datetime) -> AlertRule:
        with self._lock:
            current = self._rules.get(rule.rule_id)
            if current is None or not current.active or current.version != rule.version:
                raise StateConflictError(rule.rule_id, rule.version)
            updated = current.triggered(triggered_at)
            self._rules[rule.rule_id] = updated
            return updated.copy()
