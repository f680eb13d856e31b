"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lotwatch.alerts import AlertRuleEvaluator, AlertingConfig, InMemoryRuleStore, InMemorySink  # noqa: E402
from lotwatch.market import InMemoryPriceOracle, StaticSentimentSource  # noqa: E402
from lotwatch.portfolio import HoldingRecord, InMemoryHoldingsSource  # noqa: E402
from lotwatch.settings import get_settings  # noqa: E402

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Settable clock returning timezone-aware datetimes."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def oracle():
    return InMemoryPriceOracle({"BTC": 50000.0, "ETH": 3000.0, "AAPL": 150.0, "MSFT": 400.0})


@pytest.fixture
def holdings():
    """Two owners: u1 holds crypto at a loss and a gain, u2 holds equities."""
    return InMemoryHoldingsSource([
        HoldingRecord("u1", "BTC", 0.5, 60000.0, NOW - timedelta(days=400)),
        HoldingRecord("u1", "ETH", 10.0, 2000.0, NOW - timedelta(days=100)),
        HoldingRecord("u2", "AAPL", 100.0, 120.0, NOW - timedelta(days=30)),
        HoldingRecord("u2", "MSFT", 10.0, 300.0, NOW - timedelta(days=700)),
    ])


@pytest.fixture
def sink():
    return InMemorySink()


@pytest.fixture
def make_evaluator(oracle, holdings, sink, clock):
    """Factory for an evaluator over an in-memory store holding ``rules``."""

    def _make(rules=(), store=None, config=None, **kwargs):
        store = store or InMemoryRuleStore(rules)
        kwargs.setdefault("sentiment", StaticSentimentSource(50.0))
        evaluator = AlertRuleEvaluator(
            store,
            kwargs.pop("oracle", oracle),
            kwargs.pop("holdings", holdings),
            kwargs.pop("sink", sink),
            config=config or AlertingConfig(max_workers=4),
            clock=clock,
            **kwargs,
        )
        return evaluator, store

    return _make
