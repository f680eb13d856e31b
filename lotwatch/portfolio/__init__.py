"""Portfolio Snapshots.

Holding records, valued lots and per-owner portfolio snapshots.

Example:
    from lotwatch.portfolio import InMemoryHoldingsSource, PortfolioSnapshotter

    snapshotter = PortfolioSnapshotter(holdings, price_cache.get)
    snapshot = snapshotter.snapshot("owner-1")
    snapshot.total_value
"""

from lotwatch.portfolio.config import LONG_TERM_DAYS, HoldingPeriod
from lotwatch.portfolio.holdings import HoldingsSource, InMemoryHoldingsSource
from lotwatch.portfolio.models import HoldingRecord, Lot, PortfolioSnapshot
from lotwatch.portfolio.snapshot import PortfolioSnapshotter

__all__ = [
    # Config
    "LONG_TERM_DAYS",
    "HoldingPeriod",
    # Models
    "HoldingRecord",
    "Lot",
    "PortfolioSnapshot",
    # Sources
    "HoldingsSource",
    "InMemoryHoldingsSource",
    # Snapshots
    "PortfolioSnapshotter",
]
