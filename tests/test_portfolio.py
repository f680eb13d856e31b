"""Tests for portfolio lots and snapshots."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW
from lotwatch.errors import DataUnavailableError, ErrorCode, NoHoldingsError
from lotwatch.market import InMemoryPriceOracle, PassPriceCache
from lotwatch.portfolio import (
    HoldingPeriod,
    HoldingRecord,
    HoldingsSource,
    InMemoryHoldingsSource,
    Lot,
    PortfolioSnapshot,
    PortfolioSnapshotter,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def snapshotter(holdings, oracle):
    return PortfolioSnapshotter(holdings, PassPriceCache(oracle).get)


def _lot(symbol="AAPL", quantity=10.0, cost=100.0, price=90.0, days=30):
    return Lot(symbol, quantity, cost, NOW - timedelta(days=days), price)


# =============================================================================
# Lot
# =============================================================================

class TestLot:
    """Test valued lot arithmetic."""

    def test_value_and_pnl(self):
        lot = _lot(quantity=10, cost=100, price=90)
        assert lot.value == 900
        assert lot.cost_total == 1000
        assert lot.unrealized_pnl == -100
        assert lot.unrealized_pnl_pct == pytest.approx(-10.0)

    def test_pnl_pct_zero_cost(self):
        assert _lot(cost=0.0).unrealized_pnl_pct == 0.0

    def test_holding_period_boundary(self):
        assert _lot(days=364).holding_period(NOW) == HoldingPeriod.SHORT_TERM
        assert _lot(days=365).holding_period(NOW) == HoldingPeriod.LONG_TERM
        assert _lot(days=365).is_long_term(NOW)

    def test_holding_period_naive_acquired_at(self):
        lot = Lot("AAPL", 1, 100, datetime(2024, 1, 15, 12, 0), 100)
        assert lot.holding_period_days(NOW) == 366

    def test_future_acquisition_clamped(self):
        assert _lot(days=-3).holding_period_days(NOW) == 0

    def test_from_record_uppercases_symbol(self):
        record = HoldingRecord("u1", "btc", 1.0, 100.0, NOW)
        lot = Lot.from_record(record, 120.0, change_24h=2.5)
        assert lot.symbol == "BTC"
        assert lot.current_price == 120.0
        assert lot.change_24h == 2.5

    def test_to_dict(self):
        d = _lot(days=400).to_dict(NOW)
        assert d["symbol"] == "AAPL"
        assert d["unrealized_pnl"] == -100.0
        assert d["holding_period"] == "long_term"


# =============================================================================
# Snapshot
# =============================================================================

class TestPortfolioSnapshot:
    """Test snapshot aggregates."""

    def test_aggregates(self):
        snap = PortfolioSnapshot("u1", NOW, [
            _lot("AAPL", 10, 100, 90),
            _lot("AAPL", 10, 80, 90),
            _lot("MSFT", 5, 200, 220),
        ])
        assert snap.total_value == pytest.approx(2900)
        assert snap.total_invested == pytest.approx(2800)
        assert snap.unrealized_pnl == pytest.approx(100)
        assert snap.symbols == ["AAPL", "MSFT"]
        assert snap.value_by_symbol() == {"AAPL": 1800, "MSFT": 1100}
        assert snap.quantity_by_symbol()["AAPL"] == 20

    def test_average_cost(self):
        snap = PortfolioSnapshot("u1", NOW, [_lot("AAPL", 10, 100), _lot("AAPL", 30, 80)])
        assert snap.average_cost("aapl") == pytest.approx(85.0)
        assert snap.average_cost("MSFT") is None

    def test_price_of(self):
        snap = PortfolioSnapshot("u1", NOW, [_lot("AAPL", price=95)])
        assert snap.price_of("AAPL") == 95
        assert snap.price_of("TSLA") is None


class TestPortfolioSnapshotter:
    """Test joining holdings with prices."""

    def test_snapshot_values_all_lots(self, snapshotter):
        snap = snapshotter.snapshot("u1", as_of=NOW)
        assert snap.owner_id == "u1"
        assert len(snap.lots) == 2
        assert snap.total_value == pytest.approx(55000)
        assert snap.total_invested == pytest.approx(50000)
        assert snap.excluded_symbols == []

    def test_no_holdings(self, snapshotter):
        with pytest.raises(NoHoldingsError) as exc_info:
            snapshotter.snapshot("nobody")
        assert exc_info.value.error_code == ErrorCode.NO_HOLDINGS

    def test_zero_quantity_records_ignored(self, oracle):
        holdings = InMemoryHoldingsSource([HoldingRecord("u9", "AAPL", 0.0, 100.0, NOW)])
        snapshotter = PortfolioSnapshotter(holdings, PassPriceCache(oracle).get)
        with pytest.raises(NoHoldingsError):
            snapshotter.snapshot("u9")

    def test_missing_price_excludes_lot(self, holdings):
        oracle = InMemoryPriceOracle({"BTC": 50000.0})
        snapshotter = PortfolioSnapshotter(holdings, PassPriceCache(oracle).get)
        snap = snapshotter.snapshot("u1", as_of=NOW)
        assert [lot.symbol for lot in snap.lots] == ["BTC"]
        assert snap.excluded_symbols == ["ETH"]
        assert snap.total_value == pytest.approx(25000)

    def test_source_failure_wrapped(self, oracle):
        class BrokenHoldings(HoldingsSource):
            def get_holdings(self, owner_id):
                raise RuntimeError("connection reset")

        snapshotter = PortfolioSnapshotter(BrokenHoldings(), PassPriceCache(oracle).get)
        with pytest.raises(DataUnavailableError) as exc_info:
            snapshotter.snapshot("u1")
        assert "connection reset" in exc_info.value.message
        assert not isinstance(exc_info.value, NoHoldingsError)

    def test_default_as_of_is_utc(self, snapshotter):
        snap = snapshotter.snapshot("u2")
        assert snap.as_of.tzinfo == timezone.utc
