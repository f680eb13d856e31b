"""Tests for the periodic evaluation scheduler."""

import threading

import pytest

from lotwatch.alerts import AlertRule, AlertType, EvaluationScheduler, PassSummary


class FakeRunner:
    def __init__(self, passes_before_signal=1):
        self.passes = 0
        self.cancels = 0
        self.running = True
        self.done = threading.Event()
        self.passes_before_signal = passes_before_signal

    def run_pass(self):
        self.passes += 1
        if self.passes >= self.passes_before_signal:
            self.done.set()
        return PassSummary()

    def cancel(self):
        self.cancels += 1


class TestEvaluationScheduler:
    """Test the scheduling loop."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            EvaluationScheduler(FakeRunner(), interval_seconds=0)

    def test_run_once_calls_back(self):
        seen = []
        scheduler = EvaluationScheduler(FakeRunner(), interval_seconds=60, on_summary=seen.append)
        summary = scheduler.run_once()
        assert seen == [summary]
        assert scheduler.passes_run == 1

    def test_callback_failure_contained(self):
        def explode(summary):
            raise RuntimeError("webhook down")

        scheduler = EvaluationScheduler(FakeRunner(), interval_seconds=60, on_summary=explode)
        assert isinstance(scheduler.run_once(), PassSummary)

    def test_start_runs_repeatedly_until_stopped(self):
        runner = FakeRunner(passes_before_signal=3)
        scheduler = EvaluationScheduler(runner, interval_seconds=0.01)
        scheduler.start()
        try:
            assert runner.done.wait(5.0)
        finally:
            scheduler.stop(timeout=5.0)
        assert runner.passes >= 3
        assert runner.cancels == 1
        assert scheduler.running is False

    def test_start_is_idempotent(self):
        runner = FakeRunner()
        scheduler = EvaluationScheduler(runner, interval_seconds=60)
        scheduler.start()
        try:
            thread = scheduler._thread
            scheduler.start()
            assert scheduler._thread is thread
        finally:
            scheduler.stop(timeout=5.0)

    def test_stop_interrupts_wait(self):
        runner = FakeRunner()
        scheduler = EvaluationScheduler(runner, interval_seconds=3600)
        scheduler.start()
        assert runner.done.wait(5.0)
        scheduler.stop(timeout=5.0)
        assert runner.passes == 1

    def test_drives_real_evaluator(self, make_evaluator):
        evaluator, _ = make_evaluator()
        summaries = []
        scheduler = EvaluationScheduler(evaluator, interval_seconds=60, on_summary=summaries.append)
        scheduler.run_once()
        assert summaries[0].total_processed == 0
        assert summaries[0].skipped is False

    def test_stop_while_idle_leaves_next_pass_alone(self, make_evaluator):
        evaluator, _ = make_evaluator([
            AlertRule(rule_id="d1", owner_id="u1", alert_type=AlertType.DCA_REMINDER),
        ])
        scheduler = EvaluationScheduler(evaluator, interval_seconds=60)
        scheduler.stop()
        summary = scheduler.run_once()
        assert summary.cancelled is False
        assert summary.triggered_count == 1
