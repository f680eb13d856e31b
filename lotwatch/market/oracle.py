"""Market data collaborators.

Contracts for the external price, sentiment and price-history sources,
plus in-memory implementations used by the CLI and the test suite.
A source either returns data or raises DataUnavailableError.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Union

import pandas as pd

from lotwatch.errors import DataUnavailableError

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PriceQuote:
    """Current price for a symbol."""
    symbol: str
    price: float
    change_24h: float = 0.0
    as_of: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": round(self.price, 4),
            "change_24h": round(self.change_24h, 4),
            "as_of": self.as_of.isoformat(),
        }


class PriceOracle(ABC):
    """Source of current prices."""

    @abstractmethod
    def get_price(self, symbol: str) -> PriceQuote:
        """Return the current quote for ``symbol``.

        Raises:
            DataUnavailableError: If no price can be obtained.
        """


class SentimentSource(ABC):
    """Source of the market-wide sentiment score (0-100)."""

    @abstractmethod
    def get_sentiment(self) -> float:
        """Return the current score.

        Raises:
            DataUnavailableError: If the score cannot be obtained.
        """


class PriceHistorySource(ABC):
    """Source of historical daily closes."""

    @abstractmethod
    def history(self, symbol: str) -> pd.Series:
        """Return closes indexed by date, oldest first.

        Raises:
            DataUnavailableError: If no history exists for ``symbol``.
        """


class InMemoryPriceOracle(PriceOracle):
    """Price oracle backed by a dict; counts fetches per symbol."""

    def __init__(self, prices: Optional[Mapping[str, Union[float, PriceQuote]]] = None) -> None:
        self._lock = threading.Lock()
        self._quotes: dict[str, PriceQuote] = {}
        self.calls: Counter = Counter()
        for symbol, value in (prices or {}).items():
            self.set_price(symbol, value)

    def set_price(self, symbol: str, value: Union[float, PriceQuote], change_24h: float = 0.0) -> None:
        symbol = symbol.upper()
        quote = value if isinstance(value, PriceQuote) else PriceQuote(symbol, float(value), change_24h)
        with self._lock:
            self._quotes[symbol] = quote

    def remove(self, symbol: str) -> None:
        with self._lock:
            self._quotes.pop(symbol.upper(), None)

    def get_price(self, symbol: str) -> PriceQuote:
        symbol = symbol.upper()
        with self._lock:
            self.calls[symbol] += 1
            quote = self._quotes.get(symbol)
        if quote is None:
            raise DataUnavailableError(f"No price for {symbol}", source="price_oracle", key=symbol)
        return quote


class StaticSentimentSource(SentimentSource):
    """Sentiment source returning a fixed score, or failing when unset."""

    def __init__(self, score: Optional[float] = None) -> None:
        self.score = score

    def get_sentiment(self) -> float:
        if self.score is None:
            raise DataUnavailableError("Sentiment score unavailable", source="sentiment")
        return float(self.score)


class InMemoryPriceHistory(PriceHistorySource):
    """Price history backed by per-symbol close lists or Series."""

    def __init__(self, closes: Optional[Mapping[str, Union[pd.Series, Iterable[float]]]] = None) -> None:
        self._series: dict[str, pd.Series] = {}
        for symbol, values in (closes or {}).items():
            self.add(symbol, values)

    def add(self, symbol: str, values: Union[pd.Series, Iterable[float]]) -> None:
        if isinstance(values, pd.Series):
            series = values.astype(float)
        else:
            data = [float(v) for v in values]
            index = pd.bdate_range(end=pd.Timestamp("2024-12-31"), periods=len(data))
            series = pd.Series(data, index=index)
        self._series[symbol.upper()] = series.sort_index()

    def history(self, symbol: str) -> pd.Series:
        series = self._series.get(symbol.upper())
        if series is None or series.empty:
            raise DataUnavailableError(f"No price history for {symbol}", source="price_history", key=symbol)
        return series
