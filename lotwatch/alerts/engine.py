"""Alert rule evaluation engine.

Runs evaluation passes over every active rule: decide, claim the state
transition atomically, then notify. Rules are evaluated in parallel,
passes never overlap, and every failure is contained to its rule.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional

from lotwatch.alerts.config import DEFAULT_ALERTING_CONFIG, AlertingConfig, AlertType, RuleOutcome
from lotwatch.alerts.context import EvaluationContext
from lotwatch.alerts.evaluators import RuleEvaluator, default_evaluators
from lotwatch.alerts.messages import build_triggered_alert
from lotwatch.alerts.models import AlertRule, PassSummary, RuleResult, TriggeredAlert
from lotwatch.alerts.sink import NotificationSink
from lotwatch.alerts.store import RuleStore
from lotwatch.errors import (
    ConfigurationError,
    ErrorCode,
    LotwatchError,
    NoHoldingsError,
    SinkFailureError,
)
from lotwatch.logging_config import PassContext, PerformanceTimer, RuleContext
from lotwatch.market.cache import PassPriceCache
from lotwatch.market.oracle import PriceOracle, SentimentSource
from lotwatch.portfolio.holdings import HoldingsSource
from lotwatch.rebalancing.planner import RebalancePlanner
from lotwatch.resilience import STATE_CONFLICT_RETRY, MaxRetriesExceeded, call_with_timeout, retry
from lotwatch.tax.optimizer import TaxLotOptimizer

logger = logging.getLogger(__name__)

Decision = tuple[RuleOutcome, Optional[TriggeredAlert]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertRuleEvaluator:
    """Evaluates alert rules and fires at-most-once notifications.

    Example:
        evaluator = AlertRuleEvaluator(store, oracle, holdings, sink)
        summary = evaluator.run_pass()
        summary.triggered_count

    Args:
        store: Rule store; the source of truth for rule state.
        oracle: Current price source.
        holdings: Holdings source for portfolio-scoped rules.
        sink: Notification sink.
        sentiment: Market sentiment source, if any.
        optimizer: Tax-lot optimizer used by tax rules.
        planner: Rebalance planner used by rebalance rules.
        config: Pass configuration.
        evaluators: Evaluators replacing the default one for their AlertType.
        clock: Returns the current UTC time.
        monotonic: Monotonic clock used for price cache TTLs.
    """

    def __init__(
        self,
        store: RuleStore,
        oracle: PriceOracle,
        holdings: HoldingsSource,
        sink: NotificationSink,
        sentiment: Optional[SentimentSource] = None,
        optimizer: Optional[TaxLotOptimizer] = None,
        planner: Optional[RebalancePlanner] = None,
        config: Optional[AlertingConfig] = None,
        evaluators: Optional[dict[AlertType, RuleEvaluator]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.holdings = holdings
        self.sink = sink
        self.sentiment = sentiment
        self.config = config or DEFAULT_ALERTING_CONFIG
        self._evaluators = default_evaluators(optimizer, planner, self.config.defaults)
        self._evaluators.update(evaluators or {})
        self._clock = clock or _utc_now
        self._monotonic = monotonic

        self._pass_lock = threading.Lock()
        self._rule_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._cancel = threading.Event()
        self._claim = retry(config=STATE_CONFLICT_RETRY)(self._decide_and_claim)

    @property
    def running(self) -> bool:
        return self._pass_lock.locked()

    def cancel(self) -> None:
        """Stop dispatching rules in the current pass; in-flight rules finish.

        When no pass is running the request applies to the next pass.
        """
        if self.running:
            logger.info("Cancellation requested for running evaluation pass")
        self._cancel.set()

    # =========================================================================
    # Passes
    # =========================================================================

    def run_pass(self) -> PassSummary:
        """Evaluate every active rule once.

        Never raises. If another pass is in flight the call returns a
        summary with ``skipped=True`` (or waits, with block_on_overlap).
        """
        if not self._pass_lock.acquire(blocking=self.config.block_on_overlap):
            now = self._clock()
            logger.warning("Evaluation pass already running; skipping this run")
            return PassSummary(started_at=now, completed_at=now, skipped=True)
        try:
            return self._run_pass()
        finally:
            self._cancel.clear()
            self._pass_lock.release()

    def _run_pass(self) -> PassSummary:
        summary = PassSummary(started_at=self._clock())
        with PassContext(pass_id=summary.pass_id), PerformanceTimer("evaluation pass"):
            try:
                rules = self.store.load_active()
            except Exception as exc:
                logger.exception("Could not load active rules")
                summary.error = f"rule store unavailable: {exc}"
                summary.completed_at = self._clock()
                return summary

            ctx = self._new_context(summary.started_at, summary.pass_id)
            logger.info("Evaluation pass started with %d active rules", len(rules))

            summary.results = self._evaluate_all(rules, ctx)
            summary.cancelled = self._cancel.is_set()
            summary.price_cache = ctx.prices.stats.to_dict()
            summary.snapshot_builds = ctx.snapshot_builds
            summary.completed_at = self._clock()

            logger.info(
                "Evaluation pass complete: %d processed, %d triggered, %d failed, %d cancelled",
                summary.total_processed, summary.triggered_count,
                summary.failed_count, summary.cancelled_count,
            )
        return summary

    def _new_context(self, as_of: datetime, pass_id: str) -> EvaluationContext:
        prices = PassPriceCache(
            self.oracle,
            timeout_seconds=self.config.oracle_timeout,
            ttl_seconds=self.config.price_cache_ttl,
            clock=self._monotonic,
        )
        ctx = EvaluationContext(
            prices,
            self.holdings,
            as_of=as_of,
            pass_id=pass_id,
            sentiment=self.sentiment,
            sentiment_timeout=self.config.sentiment_timeout,
        )
        return ctx

    def _evaluate_all(self, rules: list[AlertRule], ctx: EvaluationContext) -> list[RuleResult]:
        workers = min(self.config.max_workers, len(rules))
        if workers <= 1:
            return [self._run_rule(rule, ctx) for rule in rules]

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lotwatch-rule")
        try:
            futures = [executor.submit(self._run_rule, rule, ctx) for rule in rules]
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=True)

    # =========================================================================
    # Single rule
    # =========================================================================

    def evaluate_rule(self, rule_id: str) -> RuleResult:
        """Evaluate one rule now, outside the periodic pass."""
        rule = self.store.get(rule_id)
        if rule is None:
            return RuleResult(rule_id=rule_id, outcome=RuleOutcome.SUPPRESSED, processed_at=self._clock())
        ctx = self._new_context(self._clock(), "")
        return self._run_rule(rule, ctx, honor_cancel=False)

    def _run_rule(self, rule: AlertRule, ctx: EvaluationContext, honor_cancel: bool = True) -> RuleResult:
        if honor_cancel and self._cancel.is_set():
            return RuleResult(
                rule_id=rule.rule_id,
                owner_id=rule.owner_id,
                alert_type=rule.alert_type,
                outcome=RuleOutcome.CANCELLED,
                processed_at=self._clock(),
            )

        with RuleContext(rule.rule_id, rule.owner_id, ctx.pass_id):
            result = self._evaluate(rule, ctx)
            if result.alert is not None:
                self._deliver(result)
            return result

    def _rule_lock(self, rule_id: str) -> threading.Lock:
        with self._guard:
            lock = self._rule_locks.get(rule_id)
            if lock is None:
                lock = self._rule_locks[rule_id] = threading.Lock()
            return lock

    def _evaluate(self, rule: AlertRule, ctx: EvaluationContext) -> RuleResult:
        result = RuleResult(rule_id=rule.rule_id, owner_id=rule.owner_id, alert_type=rule.alert_type)
        try:
            with self._rule_lock(rule.rule_id):
                result.outcome, result.alert = self._claim(rule.rule_id, ctx)
        except MaxRetriesExceeded as exc:
            result.outcome = RuleOutcome.CONFLICT
            result.error_code = ErrorCode.STATE_CONFLICT.value
            result.error = str(exc.last_exception)
            logger.warning("Rule %s skipped after repeated state conflicts", rule.rule_id)
        except NoHoldingsError as exc:
            result.outcome = RuleOutcome.NOT_TRIGGERED
            logger.info("Rule %s not triggered: %s", rule.rule_id, exc.message)
        except LotwatchError as exc:
            result.outcome = RuleOutcome.FAILED
            result.error_code = exc.error_code.value
            result.error = exc.message
            logger.warning(
                "Error processing rule %s: %s", rule.rule_id, exc.message,
                extra={"error_code": exc.error_code.value},
            )
        except Exception as exc:
            result.outcome = RuleOutcome.FAILED
            result.error_code = ErrorCode.INTERNAL_ERROR.value
            result.error = str(exc)
            logger.exception("Error processing rule %s", rule.rule_id)
        result.processed_at = self._clock()
        return result

    def _decide_and_claim(self, rule_id: str, ctx: EvaluationContext) -> Decision:
        rule = self.store.get(rule_id)
        if rule is None or not rule.active:
            return RuleOutcome.SUPPRESSED, None

        evaluator = self._evaluators.get(rule.alert_type)
        if evaluator is None:
            raise ConfigurationError(
                f"No evaluator registered for {rule.alert_type.value}",
                field="alert_type", rule_id=rule_id,
            )

        evaluation = evaluator.evaluate(rule, ctx)
        if not evaluation.triggered:
            return RuleOutcome.NOT_TRIGGERED, None

        triggered_at = self._clock()
        claimed = self.store.claim_trigger(rule, triggered_at)
        alert = build_triggered_alert(claimed, evaluation.payload, triggered_at)
        logger.info(
            "Rule %s triggered (%s), trigger count %d",
            rule_id, rule.alert_type.value, claimed.trigger_count,
            extra={"outcome": RuleOutcome.TRIGGERED.value},
        )
        return RuleOutcome.TRIGGERED, alert

    def _deliver(self, result: RuleResult) -> None:
        alert = result.alert
        try:
            call_with_timeout(
                self.sink.notify,
                self.config.sink_timeout,
                alert.owner_id,
                alert.title,
                alert.message,
                alert.category.value,
                name="notification sink",
            )
            result.delivered = True
        except Exception as exc:
            failure = SinkFailureError(f"Notification for rule {alert.rule_id} not delivered: {exc}")
            result.delivered = False
            result.error_code = failure.error_code.value
            result.error = failure.message
            logger.error(failure.message, extra={"error_code": failure.error_code.value})
