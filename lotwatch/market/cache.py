"""Per-pass price memoization.

One PassPriceCache lives for exactly one evaluation pass. Each symbol is
fetched from the oracle at most once, however many rules or worker
threads ask for it; failures are memoized as well so a failing symbol
is not retried within the pass. An optional TTL bounds staleness for
long-running passes.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from lotwatch.errors import DataUnavailableError, LotwatchError
from lotwatch.market.oracle import PriceOracle, PriceQuote
from lotwatch.resilience import call_with_timeout

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Counters for one pass."""
    hits: int = 0
    misses: int = 0
    fetches: int = 0
    failures: int = 0

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "fetches": self.fetches,
            "failures": self.failures,
        }


@dataclass
class _Entry:
    value: Union[PriceQuote, LotwatchError]
    stored_at: float


class PassPriceCache:
    """Memoizes oracle lookups for the duration of a pass.

    Args:
        oracle: Price source.
        timeout_seconds: Deadline for each oracle call.
        ttl_seconds: Entry lifetime; None keeps entries for the whole pass.
        clock: Monotonic clock in seconds (injectable for tests).
    """

    def __init__(
        self,
        oracle: PriceOracle,
        timeout_seconds: Optional[float] = 5.0,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.oracle = oracle
        self.timeout_seconds = timeout_seconds
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._symbol_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self.stats = CacheStats()

    def _lock_for(self, symbol: str) -> threading.Lock:
        with self._guard:
            lock = self._symbol_locks.get(symbol)
            if lock is None:
                lock = self._symbol_locks[symbol] = threading.Lock()
            return lock

    def _fresh(self, entry: Optional[_Entry]) -> bool:
        if entry is None:
            return False
        if self.ttl_seconds is None:
            return True
        return self._clock() - entry.stored_at < self.ttl_seconds

    def _count(self, attr: str) -> None:
        with self._guard:
            setattr(self.stats, attr, getattr(self.stats, attr) + 1)

    def get(self, symbol: str) -> PriceQuote:
        """Return the quote for ``symbol``, fetching it at most once.

        Raises:
            DataUnavailableError: If the oracle failed (now or earlier in
                the pass) for this symbol.
            OperationTimeout: If the oracle call exceeded its deadline.
        """
        symbol = symbol.upper()
        with self._lock_for(symbol):
            entry = self._entries.get(symbol)
            if self._fresh(entry):
                self._count("hits")
            else:
                self._count("misses")
                entry = _Entry(self._fetch(symbol), self._clock())
                self._entries[symbol] = entry

        if isinstance(entry.value, LotwatchError):
            raise entry.value
        return entry.value

    def _fetch(self, symbol: str) -> Union[PriceQuote, LotwatchError]:
        self._count("fetches")
        try:
            quote = call_with_timeout(
                self.oracle.get_price, self.timeout_seconds, symbol,
                name=f"price lookup {symbol}",
            )
        except LotwatchError as exc:
            self._count("failures")
            logger.warning("Price unavailable for %s: %s", symbol, exc.message, extra={"symbol": symbol})
            return exc
        except Exception as exc:
            self._count("failures")
            logger.warning("Price oracle error for %s: %s", symbol, exc, extra={"symbol": symbol})
            return DataUnavailableError(
                f"Price oracle error for {symbol}: {exc}", source="price_oracle", key=symbol,
            )
        if quote.price is None or quote.price <= 0:
            self._count("failures")
            return DataUnavailableError(f"Invalid price for {symbol}", source="price_oracle", key=symbol)
        return quote

    def price(self, symbol: str) -> Optional[float]:
        """Return the price for ``symbol`` or None when unavailable."""
        try:
            return self.get(symbol).price
        except LotwatchError:
            return None
