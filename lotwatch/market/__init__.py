"""Market Data.

Price, sentiment and price-history collaborator contracts with in-memory
implementations, and the per-pass price cache.

Example:
    from lotwatch.market import InMemoryPriceOracle, PassPriceCache

    oracle = InMemoryPriceOracle({"BTC": 51000.0})
    cache = PassPriceCache(oracle, timeout_seconds=5.0)
    cache.get("BTC").price  # 51000.0, fetched once per pass
"""

from lotwatch.market.cache import CacheStats, PassPriceCache
from lotwatch.market.oracle import (
    InMemoryPriceHistory,
    InMemoryPriceOracle,
    PriceHistorySource,
    PriceOracle,
    PriceQuote,
    SentimentSource,
    StaticSentimentSource,
)

__all__ = [
    # Contracts
    "PriceHistorySource",
    "PriceOracle",
    "PriceQuote",
    "SentimentSource",
    # In-memory sources
    "InMemoryPriceHistory",
    "InMemoryPriceOracle",
    "StaticSentimentSource",
    # Cache
    "CacheStats",
    "PassPriceCache",
]
