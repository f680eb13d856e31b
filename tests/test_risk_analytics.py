"""Tests for historical risk metrics."""

import threading

import numpy as np
import pytest

from lotwatch.analytics import RiskMetricsCalculator
from lotwatch.market import InMemoryPriceHistory


# =============================================================================
# Fixtures
# =============================================================================

BENCHMARK = [100.0, 101.0, 100.0, 102.0, 103.0, 101.0]


def _levered(closes, factor):
    out = [closes[0]]
    for prev, cur in zip(closes, closes[1:]):
        out.append(out[-1] * (1 + factor * (cur / prev - 1)))
    return out


@pytest.fixture
def history():
    return InMemoryPriceHistory({
        "SPY": BENCHMARK,
        "LEV": _levered(BENCHMARK, 2.0),
        "BTC": [100.0, 110.0, 99.0, 120.0],
        "FLAT": [50.0, 50.0, 50.0],
        "NEW": [10.0, 11.0],
    })


# =============================================================================
# Tests
# =============================================================================

class TestRiskMetricsCalculator:
    """Test volatility, drawdown, Sharpe and beta."""

    def test_max_drawdown(self, history):
        metrics = RiskMetricsCalculator(history).calculate("btc")
        assert metrics.available is True
        assert metrics.symbol == "BTC"
        assert metrics.observations == 3
        assert metrics.max_drawdown == pytest.approx(-0.1)

    def test_volatility_annualized(self, history):
        metrics = RiskMetricsCalculator(history).calculate("BTC")
        returns = np.array([0.1, -0.1, 120.0 / 99.0 - 1])
        expected = returns.std(ddof=1) * np.sqrt(252)
        assert metrics.volatility == pytest.approx(expected)

    def test_beta_against_benchmark(self, history):
        metrics = RiskMetricsCalculator(history).calculate("LEV")
        assert metrics.beta == pytest.approx(2.0)

    def test_benchmark_beta_is_one(self, history):
        assert RiskMetricsCalculator(history).calculate("SPY").beta == pytest.approx(1.0)

    def test_no_benchmark(self, history):
        metrics = RiskMetricsCalculator(history, benchmark_symbol=None).calculate("BTC")
        assert metrics.available is True
        assert metrics.beta is None

    def test_missing_benchmark_history(self, history):
        metrics = RiskMetricsCalculator(history, benchmark_symbol="QQQ").calculate("BTC")
        assert metrics.beta is None

    def test_flat_prices(self, history):
        metrics = RiskMetricsCalculator(history).calculate("FLAT")
        assert metrics.volatility == 0.0
        assert metrics.sharpe_ratio == 0.0
        assert metrics.max_drawdown == 0.0

    def test_sharpe_uses_risk_free_rate(self, history):
        low = RiskMetricsCalculator(history, risk_free_rate=0.0).calculate("BTC")
        high = RiskMetricsCalculator(history, risk_free_rate=0.5).calculate("BTC")
        assert low.sharpe_ratio > high.sharpe_ratio

    def test_insufficient_history(self, history):
        metrics = RiskMetricsCalculator(history).calculate("NEW")
        assert metrics.available is False
        assert "insufficient history" in metrics.reason
        assert metrics.volatility is None

    def test_unknown_symbol(self, history):
        metrics = RiskMetricsCalculator(history).calculate("DOGE")
        assert metrics.available is False
        assert "No price history" in metrics.reason

    def test_no_history_source(self):
        metrics = RiskMetricsCalculator().calculate("BTC")
        assert metrics.available is False
        assert metrics.reason == "no price history source configured"

    def test_to_dict(self, history):
        d = RiskMetricsCalculator(history).calculate("BTC").to_dict()
        assert d["max_drawdown"] == pytest.approx(-0.1)
        assert set(d) == {
            "symbol", "available", "reason", "observations",
            "volatility", "sharpe_ratio", "beta", "max_drawdown",
        }


# =============================================================================
# History lookups
# =============================================================================

class CountingHistory(InMemoryPriceHistory):
    def __init__(self, closes):
        super().__init__(closes)
        self.calls = []

    def history(self, symbol):
        self.calls.append(symbol)
        return super().history(symbol)


class BrokenHistory(InMemoryPriceHistory):
    def __init__(self, error):
        super().__init__()
        self.error = error

    def history(self, symbol):
        raise self.error


class TestHistoryLookups:
    """Test caching and failure handling around the history source."""

    def test_history_fetched_once_per_symbol(self):
        source = CountingHistory({"SPY": BENCHMARK, "LEV": _levered(BENCHMARK, 2.0)})
        calculator = RiskMetricsCalculator(source)
        calculator.calculate("LEV")
        calculator.calculate("lev")
        calculator.calculate("SPY")
        assert sorted(source.calls) == ["LEV", "SPY"]
        assert calculator.fetches == 2

    def test_failures_memoized(self):
        source = CountingHistory({})
        calculator = RiskMetricsCalculator(source, benchmark_symbol=None)
        assert calculator.calculate("DOGE").available is False
        assert calculator.calculate("DOGE").available is False
        assert source.calls == ["DOGE"]

    def test_cache_expires_after_ttl(self):
        source = CountingHistory({"BTC": [100.0, 110.0, 99.0]})
        now = [0.0]
        calculator = RiskMetricsCalculator(
            source, benchmark_symbol=None, cache_ttl_seconds=60, clock=lambda: now[0],
        )
        calculator.calculate("BTC")
        now[0] = 59.0
        calculator.calculate("BTC")
        assert source.calls == ["BTC"]
        now[0] = 61.0
        calculator.calculate("BTC")
        assert source.calls == ["BTC", "BTC"]

    @pytest.mark.parametrize("error", [TimeoutError("read timed out"), RuntimeError("bad payload")])
    def test_unexpected_error_unavailable(self, error):
        metrics = RiskMetricsCalculator(BrokenHistory(error)).calculate("BTC")
        assert metrics.available is False
        assert metrics.reason.startswith("price history error for BTC")
        assert metrics.volatility is None

    def test_broken_benchmark_leaves_beta_empty(self):
        class BrokenBenchmark(InMemoryPriceHistory):
            def history(self, symbol):
                if symbol == "SPY":
                    raise ConnectionError("benchmark feed down")
                return super().history(symbol)

        source = BrokenBenchmark({"BTC": [100.0, 110.0, 99.0, 120.0]})
        metrics = RiskMetricsCalculator(source).calculate("BTC")
        assert metrics.available is True
        assert metrics.beta is None

    def test_slow_history_times_out(self):
        release = threading.Event()

        class HangingHistory(InMemoryPriceHistory):
            def history(self, symbol):
                release.wait(5)
                return super().history(symbol)

        try:
            metrics = RiskMetricsCalculator(HangingHistory(), timeout_seconds=0.05).calculate("BTC")
        finally:
            release.set()
        assert metrics.available is False
        assert metrics.reason == "price history BTC timed out after 0.05s"
