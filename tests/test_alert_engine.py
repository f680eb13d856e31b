"""Tests for the alert rule evaluation engine."""

import threading
from datetime import timedelta

import pytest

from conftest import NOW
from lotwatch.alerts import (
    AlertingConfig,
    AlertRule,
    AlertRuleEvaluator,
    AlertType,
    Evaluation,
    InMemoryRuleStore,
    InMemorySink,
    NotificationSink,
    RuleEvaluator,
    RuleOutcome,
    SentimentRuleConfig,
)
from lotwatch.analytics import RiskMetricsCalculator
from lotwatch.errors import ErrorCode, StateConflictError
from lotwatch.market import InMemoryPriceHistory, SentimentSource
from lotwatch.tax import TaxLotOptimizer


# =============================================================================
# Fixtures
# =============================================================================

def price_rule(rule_id, target=50000.0, direction="above", symbol="BTC", owner_id="u1"):
    return AlertRule(
        rule_id=rule_id, owner_id=owner_id, alert_type=AlertType.PRICE_TARGET,
        symbol=symbol, target_value=target, direction=direction,
    )


def dca_rule(rule_id, owner_id="u1", interval_days=7):
    return AlertRule(
        rule_id=rule_id, owner_id=owner_id, alert_type=AlertType.DCA_REMINDER,
        configuration={"interval_days": interval_days},
    )


class BlockingSink(NotificationSink):
    """Sink that blocks inside notify() until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def notify(self, owner_id, title, body, category):
        self.calls += 1
        self.entered.set()
        self.release.wait(5)


class FailingSink(NotificationSink):
    def notify(self, owner_id, title, body, category):
        raise ConnectionError("smtp down")


class AlwaysConflictStore(InMemoryRuleStore):
    """Store whose state transitions always lose the race."""

    def __init__(self, rules):
        super().__init__(rules)
        self.claims = 0

    def claim_trigger(self, rule, triggered_at):
        self.claims += 1
        raise StateConflictError(rule.rule_id, rule.version)


class RacingStore(InMemoryRuleStore):
    """Another evaluator claims the rule just before this one does."""

    def claim_trigger(self, rule, triggered_at):
        super().claim_trigger(rule, triggered_at)
        raise StateConflictError(rule.rule_id, rule.version)


class BrokenStore(InMemoryRuleStore):
    def load_active(self):
        raise RuntimeError("database is locked")


class CountingSentiment(SentimentSource):
    def __init__(self, score):
        self.score = score
        self.calls = 0
        self._lock = threading.Lock()

    def get_sentiment(self):
        with self._lock:
            self.calls += 1
        return self.score


@pytest.fixture
def blocking_sink():
    sink = BlockingSink()
    yield sink
    sink.release.set()


# =============================================================================
# Trigger semantics
# =============================================================================

class TestTriggerSemantics:
    """Test at-most-once triggering and rule state transitions."""

    def test_price_crossing_fires_once(self, make_evaluator, oracle, sink):
        evaluator, store = make_evaluator([price_rule("r1", target=50000.0)])

        oracle.set_price("BTC", 49000.0)
        first = evaluator.run_pass()
        assert first.result_for("r1").outcome == RuleOutcome.NOT_TRIGGERED
        assert sink.total == 0

        oracle.set_price("BTC", 51000.0)
        second = evaluator.run_pass()
        assert second.result_for("r1").outcome == RuleOutcome.TRIGGERED
        assert second.result_for("r1").delivered is True

        third = evaluator.run_pass()
        assert third.result_for("r1") is None
        assert sink.total == 1
        assert sink.get_all("u1")[0].body == "BTC has reached your target price of $50,000.00"

    def test_one_shot_rule_deactivated(self, make_evaluator, clock):
        evaluator, store = make_evaluator([price_rule("r1", target=40000.0)])
        evaluator.run_pass()
        rule = store.get("r1")
        assert rule.active is False
        assert rule.trigger_count == 1
        assert rule.last_triggered_at == clock.now
        assert rule.version == 1

    def test_inactive_rule_never_triggers(self, make_evaluator, sink):
        rule = price_rule("r1", target=1.0)
        rule.active = False
        evaluator, _ = make_evaluator([rule])
        summary = evaluator.run_pass()
        assert summary.results == []
        assert evaluator.evaluate_rule("r1").outcome == RuleOutcome.SUPPRESSED
        assert sink.total == 0

    def test_dca_recurring(self, make_evaluator, clock, sink):
        evaluator, store = make_evaluator([dca_rule("d1", interval_days=7)])

        assert evaluator.run_pass().triggered_count == 1
        clock.advance(days=6)
        assert evaluator.run_pass().triggered_count == 0
        clock.advance(days=1)
        assert evaluator.run_pass().triggered_count == 1

        rule = store.get("d1")
        assert rule.active is True
        assert rule.trigger_count == 2
        assert rule.last_triggered_at == NOW + timedelta(days=7)
        assert [n.title for n in sink.get_all("u1")] == ["DCA Reminder", "DCA Reminder"]

    def test_concurrent_evaluators_trigger_once(self, oracle, holdings, clock):
        rules = [price_rule(f"r{i}", target=40000.0) for i in range(10)]
        store = InMemoryRuleStore(rules)
        sink = InMemorySink()
        evaluators = [
            AlertRuleEvaluator(store, oracle, holdings, sink, config=AlertingConfig(max_workers=4), clock=clock)
            for _ in range(3)
        ]
        threads = [threading.Thread(target=e.run_pass) for e in evaluators]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert sink.total == 10
        assert all(r.trigger_count == 1 and not r.active for r in store.all())

    def test_notification_category(self, make_evaluator, sink):
        evaluator, _ = make_evaluator([dca_rule("d1")])
        evaluator.run_pass()
        assert sink.get_all("u1")[0].category == "dca_reminder"


# =============================================================================
# Failure containment
# =============================================================================

class TestFailureContainment:
    """Test that one rule's failure never blocks another."""

    def test_missing_target_value(self, make_evaluator, sink):
        bad = AlertRule(rule_id="bad", owner_id="u1", alert_type=AlertType.PRICE_TARGET,
                        symbol="BTC", direction="above")
        evaluator, store = make_evaluator([bad, price_rule("good", target=1.0)])
        summary = evaluator.run_pass()

        failed = summary.result_for("bad")
        assert failed.outcome == RuleOutcome.FAILED
        assert failed.error_code == ErrorCode.CONFIGURATION_ERROR.value
        assert summary.result_for("good").outcome == RuleOutcome.TRIGGERED
        assert store.get("bad").active is True
        assert sink.total == 1

    def test_price_unavailable(self, make_evaluator):
        evaluator, _ = make_evaluator([price_rule("r1", symbol="DOGE")])
        result = evaluator.run_pass().result_for("r1")
        assert result.outcome == RuleOutcome.FAILED
        assert result.error_code == ErrorCode.DATA_UNAVAILABLE.value

    def test_no_holdings_not_triggered(self, make_evaluator):
        rule = AlertRule(rule_id="t1", owner_id="nobody", alert_type=AlertType.TAX_OPTIMIZATION)
        evaluator, _ = make_evaluator([rule])
        result = evaluator.run_pass().result_for("t1")
        assert result.outcome == RuleOutcome.NOT_TRIGGERED
        assert result.error_code is None

    def test_tax_rule_survives_broken_price_history(self, make_evaluator):
        class BrokenPrices(InMemoryPriceHistory):
            def history(self, symbol):
                raise TimeoutError("history backend timed out")

        optimizer = TaxLotOptimizer(risk=RiskMetricsCalculator(BrokenPrices()))
        rule = AlertRule(rule_id="t1", owner_id="u1", alert_type=AlertType.TAX_OPTIMIZATION,
                         configuration={"minimum_savings": 100})
        evaluator, _ = make_evaluator([rule], optimizer=optimizer)
        result = evaluator.run_pass().result_for("t1")
        assert result.outcome == RuleOutcome.TRIGGERED
        assert result.error_code is None

    def test_unexpected_error(self, make_evaluator):
        class Exploding(RuleEvaluator):
            alert_type = AlertType.DCA_REMINDER

            def evaluate(self, rule, ctx):
                raise RuntimeError("boom")

        evaluator, _ = make_evaluator(
            [dca_rule("d1"), price_rule("r1", target=1.0)],
            evaluators={AlertType.DCA_REMINDER: Exploding()},
        )
        summary = evaluator.run_pass()
        assert summary.result_for("d1").error_code == ErrorCode.INTERNAL_ERROR.value
        assert summary.result_for("d1").outcome == RuleOutcome.FAILED
        assert summary.result_for("r1").outcome == RuleOutcome.TRIGGERED

    def test_store_unavailable(self, make_evaluator):
        evaluator, _ = make_evaluator(store=BrokenStore())
        summary = evaluator.run_pass()
        assert summary.error is not None
        assert "database is locked" in summary.error
        assert summary.results == []
        assert summary.completed_at is not None


# =============================================================================
# State conflicts
# =============================================================================

class TestStateConflicts:
    """Test optimistic-concurrency conflicts on trigger."""

    def test_conflict_after_retry(self, make_evaluator, sink):
        store = AlwaysConflictStore([price_rule("r1", target=1.0)])
        evaluator, _ = make_evaluator(store=store)
        result = evaluator.run_pass().result_for("r1")
        assert result.outcome == RuleOutcome.CONFLICT
        assert result.error_code == ErrorCode.STATE_CONFLICT.value
        assert store.claims == 2
        assert sink.total == 0

    def test_lost_race_is_suppressed(self, make_evaluator, sink):
        store = RacingStore([price_rule("r1", target=1.0)])
        evaluator, _ = make_evaluator(store=store)
        summary = evaluator.run_pass()
        assert summary.result_for("r1").outcome == RuleOutcome.SUPPRESSED
        assert summary.conflict_count == 0
        assert sink.total == 0
        assert store.get("r1").trigger_count == 1


# =============================================================================
# Delivery
# =============================================================================

class TestDelivery:
    """Test sink failures after the state transition."""

    def test_sink_failure_keeps_trigger(self, make_evaluator):
        evaluator, store = make_evaluator([price_rule("r1", target=1.0)], sink=FailingSink())
        result = evaluator.run_pass().result_for("r1")
        assert result.outcome == RuleOutcome.TRIGGERED
        assert result.delivered is False
        assert result.error_code == ErrorCode.SINK_FAILURE.value
        assert "smtp down" in result.error
        assert store.get("r1").active is False

    def test_sink_timeout(self, make_evaluator, blocking_sink):
        evaluator, store = make_evaluator(
            [price_rule("r1", target=1.0)],
            sink=blocking_sink,
            config=AlertingConfig(max_workers=1, sink_timeout=0.05),
        )
        result = evaluator.run_pass().result_for("r1")
        assert result.outcome == RuleOutcome.TRIGGERED
        assert result.delivered is False
        assert result.error_code == ErrorCode.SINK_FAILURE.value
        assert store.get("r1").trigger_count == 1


# =============================================================================
# Pass behaviour
# =============================================================================

class TestPassBehaviour:
    """Test overlap, cancellation and per-pass memoization."""

    def test_overlapping_pass_skipped(self, make_evaluator, blocking_sink):
        evaluator, _ = make_evaluator(
            [dca_rule("d1")],
            sink=blocking_sink,
            config=AlertingConfig(max_workers=1, sink_timeout=None),
        )
        results = {}
        worker = threading.Thread(target=lambda: results.setdefault("first", evaluator.run_pass()))
        worker.start()
        assert blocking_sink.entered.wait(5)
        assert evaluator.running

        second = evaluator.run_pass()
        blocking_sink.release.set()
        worker.join(5)

        assert second.skipped is True
        assert second.results == []
        assert results["first"].triggered_count == 1
        assert not evaluator.running

    def test_cancel_mid_pass(self, make_evaluator, blocking_sink):
        evaluator, store = make_evaluator(
            [dca_rule("d1"), dca_rule("d2"), dca_rule("d3")],
            sink=blocking_sink,
            config=AlertingConfig(max_workers=1, sink_timeout=None),
        )
        results = {}
        worker = threading.Thread(target=lambda: results.setdefault("summary", evaluator.run_pass()))
        worker.start()
        assert blocking_sink.entered.wait(5)

        evaluator.cancel()
        blocking_sink.release.set()
        worker.join(5)

        summary = results["summary"]
        assert summary.cancelled is True
        assert summary.result_for("d1").outcome == RuleOutcome.TRIGGERED
        assert summary.result_for("d2").outcome == RuleOutcome.CANCELLED
        assert summary.result_for("d3").outcome == RuleOutcome.CANCELLED
        assert summary.total_processed == 1
        assert summary.cancelled_count == 2
        assert store.get("d2").trigger_count == 0

    def test_cancel_between_passes_applies_to_next_pass(self, make_evaluator):
        evaluator, store = make_evaluator([dca_rule("d1"), dca_rule("d2")])
        evaluator.cancel()
        summary = evaluator.run_pass()
        assert summary.cancelled is True
        assert summary.cancelled_count == 2
        assert summary.triggered_count == 0
        assert store.get("d1").trigger_count == 0

    def test_cancel_does_not_leak_into_later_passes(self, make_evaluator):
        evaluator, _ = make_evaluator([dca_rule("d1")])
        evaluator.cancel()
        evaluator.run_pass()
        summary = evaluator.run_pass()
        assert summary.cancelled is False
        assert summary.triggered_count == 1

    def test_price_fetched_once_per_pass(self, make_evaluator, oracle):
        rules = [price_rule(f"r{i}", target=60000.0) for i in range(6)]
        evaluator, _ = make_evaluator(rules)
        summary = evaluator.run_pass()
        assert oracle.calls["BTC"] == 1
        assert summary.price_cache["fetches"] == 1

        evaluator.run_pass()
        assert oracle.calls["BTC"] == 2

    def test_snapshot_built_once_per_owner(self, make_evaluator):
        rules = [
            AlertRule(rule_id="t1", owner_id="u1", alert_type=AlertType.TAX_OPTIMIZATION),
            AlertRule(rule_id="k1", owner_id="u1", alert_type=AlertType.RISK_THRESHOLD),
            AlertRule(rule_id="k2", owner_id="u2", alert_type=AlertType.RISK_THRESHOLD),
        ]
        evaluator, _ = make_evaluator(rules)
        summary = evaluator.run_pass()
        assert summary.snapshot_builds == 2
        assert summary.to_dict()["snapshot_builds"] == 2

    def test_sentiment_fetched_once(self, make_evaluator):
        source = CountingSentiment(10.0)
        rules = [
            AlertRule(rule_id=f"s{i}", owner_id=f"u{i}", alert_type=AlertType.MARKET_SENTIMENT)
            for i in range(4)
        ]
        evaluator, _ = make_evaluator(rules, sentiment=source)
        summary = evaluator.run_pass()
        assert summary.triggered_count == 4
        assert source.calls == 1

    def test_summary_to_dict(self, make_evaluator):
        evaluator, _ = make_evaluator([dca_rule("d1"), price_rule("r1", target=99999.0)])
        d = evaluator.run_pass().to_dict()
        assert d["total_processed"] == 2
        assert d["triggered_count"] == 1
        assert {a["rule_id"] for a in d["alerts"]} == {"d1", "r1"}
        assert d["triggered_alerts"][0]["type"] == "dca_reminder"
        assert d["skipped"] is False


class TestEvaluateRule:
    """Test on-demand evaluation of a single rule."""

    def test_unknown_rule(self, make_evaluator):
        evaluator, _ = make_evaluator([])
        assert evaluator.evaluate_rule("missing").outcome == RuleOutcome.SUPPRESSED

    def test_evaluate_single(self, make_evaluator, sink):
        evaluator, _ = make_evaluator([price_rule("r1", target=1.0)])
        result = evaluator.evaluate_rule("r1")
        assert result.outcome == RuleOutcome.TRIGGERED
        assert sink.total == 1


class TestCustomEvaluators:
    """Test swapping in an evaluator for one type."""

    def test_custom_registry_entry(self, make_evaluator, sink):
        class AlwaysGreedy(RuleEvaluator):
            alert_type = AlertType.MARKET_SENTIMENT

            def evaluate(self, rule, ctx):
                cfg = SentimentRuleConfig.from_rule(rule, self.defaults)
                return Evaluation(True, {"extreme_threshold": cfg.extreme_threshold})

        evaluator, _ = make_evaluator(
            [AlertRule(rule_id="s1", owner_id="u1", alert_type=AlertType.MARKET_SENTIMENT)],
            evaluators={AlertType.MARKET_SENTIMENT: AlwaysGreedy()},
        )
        assert evaluator.run_pass().triggered_count == 1
        assert sink.get_all("u1")[0].title == "Market Sentiment Alert"
