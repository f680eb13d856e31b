"""Tests for the SQLAlchemy rule store."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW
from lotwatch.alerts import AlertRule, AlertType, RuleOutcome
from lotwatch.alerts.sql_store import SqlRuleStore, _aware
from lotwatch.db import create_db_engine, get_session_factory, init_db
from lotwatch.errors import StateConflictError


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield SqlRuleStore(get_session_factory(engine))
    engine.dispose()


def _price_rule(rule_id="r1", **kwargs):
    return AlertRule(
        owner_id="u1", alert_type=AlertType.PRICE_TARGET, rule_id=rule_id,
        symbol="BTC", target_value=50000.0, direction="above", **kwargs,
    )


# =============================================================================
# Tests
# =============================================================================

class TestSqlRuleStore:
    """Test persistence and compare-and-swap claims."""

    def test_save_and_get(self, store):
        store.save(_price_rule(configuration={"note": "breakout"}, name="BTC breakout"))
        rule = store.get("r1")
        assert rule.alert_type == AlertType.PRICE_TARGET
        assert rule.target_value == 50000.0
        assert rule.configuration == {"note": "breakout"}
        assert rule.name == "BTC breakout"
        assert rule.version == 0

    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_save_replaces(self, store):
        store.save(_price_rule())
        store.save(_price_rule(active=False))
        assert store.get("r1").active is False

    def test_load_active(self, store):
        store.save(_price_rule("r2"))
        store.save(_price_rule("r1"))
        store.save(_price_rule("r3", active=False))
        assert [r.rule_id for r in store.load_active()] == ["r1", "r2"]

    def test_claim_one_shot(self, store):
        store.save(_price_rule())
        updated = store.claim_trigger(store.get("r1"), NOW)
        assert updated.active is False
        stored = store.get("r1")
        assert stored.active is False
        assert stored.trigger_count == 1
        assert stored.version == 1
        assert stored.last_triggered_at == NOW

    def test_claim_recurring_stays_active(self, store):
        store.save(AlertRule(owner_id="u1", alert_type=AlertType.DCA_REMINDER, rule_id="d1"))
        store.claim_trigger(store.get("d1"), NOW)
        stored = store.get("d1")
        assert stored.active is True
        assert stored.trigger_count == 1

    def test_stale_version_conflicts(self, store):
        store.save(AlertRule(owner_id="u1", alert_type=AlertType.DCA_REMINDER, rule_id="d1"))
        stale = store.get("d1")
        store.claim_trigger(stale, NOW)
        with pytest.raises(StateConflictError) as exc_info:
            store.claim_trigger(stale, NOW + timedelta(days=7))
        assert exc_info.value.expected_version == 0
        assert store.get("d1").trigger_count == 1

    def test_inactive_conflicts(self, store):
        store.save(_price_rule(active=False))
        with pytest.raises(StateConflictError):
            store.claim_trigger(store.get("r1"), NOW)

    def test_timestamps_are_aware(self, store):
        store.save(_price_rule(last_triggered_at=NOW))
        assert store.get("r1").last_triggered_at.tzinfo is not None


class TestAware:
    def test_naive_gets_utc(self):
        assert _aware(datetime(2025, 1, 1)).tzinfo == timezone.utc

    def test_aware_unchanged(self):
        value = datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=2)))
        assert _aware(value) is value

    def test_none(self):
        assert _aware(None) is None


class TestEngineWithSqlStore:
    """An evaluation pass against the SQL store."""

    def test_price_rule_triggers_once(self, store, make_evaluator, oracle):
        store.save(_price_rule())
        evaluator, _ = make_evaluator(store=store)

        first = evaluator.run_pass()
        second = evaluator.run_pass()

        assert first.results[0].outcome == RuleOutcome.TRIGGERED
        assert second.results == []
        assert store.get("r1").trigger_count == 1
