"""Historical Risk Metrics.

Volatility, Sharpe ratio, beta and maximum drawdown computed from real
daily close series. When a symbol has no usable history the result is
marked unavailable with a reason instead of being filled with guesses.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np
import pandas as pd

from lotwatch.errors import LotwatchError
from lotwatch.market.oracle import PriceHistorySource
from lotwatch.resilience import call_with_timeout

logger = logging.getLogger(__name__)


@dataclass
class RiskMetrics:
    """Risk metrics for one symbol."""

    symbol: str
    available: bool = False
    reason: str = ""
    observations: int = 0
    volatility: Optional[float] = None  # Annualized
    sharpe_ratio: Optional[float] = None
    beta: Optional[float] = None
    max_drawdown: Optional[float] = None  # Negative fraction

    def to_dict(self) -> dict:
        def _r(value: Optional[float], digits: int = 4) -> Optional[float]:
            return None if value is None else round(float(value), digits)

        return {
            "symbol": self.symbol,
            "available": self.available,
            "reason": self.reason,
            "observations": self.observations,
            "volatility": _r(self.volatility),
            "sharpe_ratio": _r(self.sharpe_ratio),
            "beta": _r(self.beta),
            "max_drawdown": _r(self.max_drawdown),
        }


@dataclass
class _Entry:
    value: Union[pd.Series, str]
    stored_at: float


class RiskMetricsCalculator:
    """Calculates per-symbol risk metrics from price history.

    Each symbol's history (the benchmark included) is fetched at most once
    per ``cache_ttl_seconds``; failed lookups are remembered for the same
    period and reported as unavailable.

    Example:
        calculator = RiskMetricsCalculator(history_source)
        metrics = calculator.calculate("AAPL")
        if metrics.available:
            metrics.volatility
    """

    DEFAULT_RISK_FREE_RATE = 0.05
    TRADING_DAYS_PER_YEAR = 252
    MIN_OBSERVATIONS = 2

    def __init__(
        self,
        history: Optional[PriceHistorySource] = None,
        risk_free_rate: Optional[float] = None,
        benchmark_symbol: Optional[str] = "SPY",
        timeout_seconds: Optional[float] = 5.0,
        cache_ttl_seconds: Optional[float] = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.history = history
        self.risk_free_rate = self.DEFAULT_RISK_FREE_RATE if risk_free_rate is None else risk_free_rate
        self.benchmark_symbol = benchmark_symbol
        self.timeout_seconds = timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._symbol_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self.fetches = 0

    def _lock_for(self, symbol: str) -> threading.Lock:
        with self._guard:
            lock = self._symbol_locks.get(symbol)
            if lock is None:
                lock = self._symbol_locks[symbol] = threading.Lock()
            return lock

    def _fresh(self, entry: Optional[_Entry]) -> bool:
        if entry is None:
            return False
        if self.cache_ttl_seconds is None:
            return True
        return self._clock() - entry.stored_at < self.cache_ttl_seconds

    def _returns(self, symbol: str) -> Union[pd.Series, str]:
        """Return daily returns for ``symbol``, or the reason they are unavailable."""
        symbol = symbol.upper()
        with self._lock_for(symbol):
            entry = self._entries.get(symbol)
            if not self._fresh(entry):
                entry = _Entry(self._fetch(symbol), self._clock())
                self._entries[symbol] = entry
        return entry.value

    def _fetch(self, symbol: str) -> Union[pd.Series, str]:
        with self._guard:
            self.fetches += 1
        try:
            closes = call_with_timeout(
                self.history.history, self.timeout_seconds, symbol,  # type: ignore[union-attr]
                name=f"price history {symbol}",
            )
            return closes.astype(float).pct_change().dropna()
        except LotwatchError as exc:
            logger.debug("Price history unavailable for %s: %s", symbol, exc.message)
            return exc.message
        except Exception as exc:
            logger.warning("Price history error for %s: %s", symbol, exc, extra={"symbol": symbol})
            return f"price history error for {symbol}: {exc}"

    def calculate(self, symbol: str) -> RiskMetrics:
        """Calculate metrics for ``symbol``.

        Returns:
            RiskMetrics; ``available`` is False with a reason when there
            is no history source, the history lookup failed, or there are
            too few observations.
        """
        metrics = RiskMetrics(symbol=symbol.upper())
        if self.history is None:
            metrics.reason = "no price history source configured"
            return metrics

        returns = self._returns(symbol)
        if isinstance(returns, str):
            metrics.reason = returns
            return metrics

        metrics.observations = len(returns)
        if len(returns) < self.MIN_OBSERVATIONS:
            metrics.reason = f"insufficient history ({len(returns)} returns)"
            return metrics

        std_return = returns.std()
        metrics.volatility = float(std_return * np.sqrt(self.TRADING_DAYS_PER_YEAR))

        daily_rf = self.risk_free_rate / self.TRADING_DAYS_PER_YEAR
        if std_return > 0:
            excess = returns.mean() - daily_rf
            metrics.sharpe_ratio = float(excess * self.TRADING_DAYS_PER_YEAR / metrics.volatility)
        else:
            metrics.sharpe_ratio = 0.0

        cumulative = (1 + returns).cumprod()
        running_max = cumulative.cummax()
        drawdown = (cumulative - running_max) / running_max
        metrics.max_drawdown = float(min(drawdown.min(), 0.0))

        metrics.beta = self._beta(returns)
        metrics.available = True
        return metrics

    def _beta(self, returns: pd.Series) -> Optional[float]:
        if not self.benchmark_symbol:
            return None
        benchmark = self._returns(self.benchmark_symbol)
        if isinstance(benchmark, str):
            return None

        aligned = pd.DataFrame({"asset": returns, "benchmark": benchmark}).dropna()
        if len(aligned) < self.MIN_OBSERVATIONS:
            return None

        variance = aligned["benchmark"].var()
        if variance == 0 or np.isnan(variance):
            return None
        covariance = aligned["asset"].cov(aligned["benchmark"])
        return float(covariance / variance)
