"""Per-pass evaluation context.

Holds everything shared by the rules of a single pass: the memoized
price cache, portfolio snapshots memoized per owner, and the sentiment
score fetched at most once. Safe to use from the pass's worker threads.
"""

import logging
import threading
from datetime import datetime
from typing import Optional, Union

from lotwatch.errors import DataUnavailableError, LotwatchError
from lotwatch.market.cache import PassPriceCache
from lotwatch.market.oracle import PriceQuote, SentimentSource
from lotwatch.portfolio.holdings import HoldingsSource
from lotwatch.portfolio.models import PortfolioSnapshot
from lotwatch.portfolio.snapshot import PortfolioSnapshotter
from lotwatch.resilience import call_with_timeout

logger = logging.getLogger(__name__)

_UNSET = object()


class EvaluationContext:
    """Shared, memoized inputs for one evaluation pass."""

    def __init__(
        self,
        prices: PassPriceCache,
        holdings: HoldingsSource,
        as_of: datetime,
        pass_id: str = "",
        sentiment: Optional[SentimentSource] = None,
        sentiment_timeout: Optional[float] = None,
    ) -> None:
        self.prices = prices
        self.as_of = as_of
        self.pass_id = pass_id
        self._sentiment_source = sentiment
        self._sentiment_timeout = sentiment_timeout
        self._snapshotter = PortfolioSnapshotter(holdings, prices.get)
        self._snapshots: dict[str, Union[PortfolioSnapshot, LotwatchError]] = {}
        self._owner_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._sentiment_lock = threading.Lock()
        self._sentiment: object = _UNSET
        self.snapshot_builds = 0

    def price(self, symbol: str) -> PriceQuote:
        return self.prices.get(symbol)

    def price_or_none(self, symbol: str) -> Optional[float]:
        return self.prices.price(symbol)

    def _owner_lock(self, owner_id: str) -> threading.Lock:
        with self._guard:
            lock = self._owner_locks.get(owner_id)
            if lock is None:
                lock = self._owner_locks[owner_id] = threading.Lock()
            return lock

    def snapshot(self, owner_id: str) -> PortfolioSnapshot:
        """Return the owner's snapshot, building it once per pass.

        Raises:
            NoHoldingsError: If the owner holds nothing.
            DataUnavailableError: If holdings could not be read.
        """
        with self._owner_lock(owner_id):
            cached = self._snapshots.get(owner_id)
            if cached is None:
                try:
                    cached = self._snapshotter.snapshot(owner_id, as_of=self.as_of)
                except LotwatchError as exc:
                    cached = exc
                self._snapshots[owner_id] = cached
                with self._guard:
                    self.snapshot_builds += 1

        if isinstance(cached, LotwatchError):
            raise cached
        return cached

    def sentiment(self) -> float:
        """Return the market sentiment score, fetched at most once.

        Raises:
            DataUnavailableError: If no source is configured or it failed.
            OperationTimeout: If the source exceeded its deadline.
        """
        with self._sentiment_lock:
            if self._sentiment is _UNSET:
                self._sentiment = self._fetch_sentiment()
        if isinstance(self._sentiment, LotwatchError):
            raise self._sentiment
        return self._sentiment  # type: ignore[return-value]

    def _fetch_sentiment(self) -> Union[float, LotwatchError]:
        if self._sentiment_source is None:
            return DataUnavailableError("No sentiment source configured", source="sentiment")
        try:
            score = call_with_timeout(
                self._sentiment_source.get_sentiment, self._sentiment_timeout, name="sentiment lookup",
            )
        except LotwatchError as exc:
            logger.warning("Sentiment unavailable: %s", exc.message)
            return exc
        except Exception as exc:
            logger.warning("Sentiment source error: %s", exc)
            return DataUnavailableError(f"Sentiment source error: {exc}", source="sentiment")
        return float(score)
