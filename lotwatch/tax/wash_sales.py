"""Wash Sale Risk.

A loss sale is at risk of the wash-sale rule when the same symbol was
sold by the owner in the preceding window. Risk is informational: it
never removes an opportunity from a report. When no sell history is
available the check reports ``checked=False`` rather than guessing.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from lotwatch.errors import LotwatchError
from lotwatch.tax.config import DEFAULT_WASH_SALE_CONFIG, WashSaleConfig

logger = logging.getLogger(__name__)

NO_SELL_HISTORY = "wash sale risk not checked: sell history unavailable"


@dataclass(frozen=True)
class SellRecord:
    """A completed sale."""
    owner_id: str
    symbol: str
    quantity: float
    price: float
    sold_at: datetime


class SellHistorySource(ABC):
    """Source of an owner's past sales."""

    @abstractmethod
    def sales(self, owner_id: str, symbol: str, since: datetime) -> list[SellRecord]:
        """Return sales of ``symbol`` at or after ``since``.

        Raises:
            DataUnavailableError: If the history cannot be read.
        """


class InMemorySellHistory(SellHistorySource):
    """Sell history kept in memory, organized by owner_id."""

    def __init__(self, records: Optional[Iterable[SellRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, list[SellRecord]] = defaultdict(list)
        for record in records or []:
            self.add(record)

    def add(self, record: SellRecord) -> None:
        with self._lock:
            self._records[record.owner_id].append(record)

    def sales(self, owner_id: str, symbol: str, since: datetime) -> list[SellRecord]:
        symbol = symbol.upper()
        with self._lock:
            return [
                r for r in self._records.get(owner_id, [])
                if r.symbol.upper() == symbol and r.sold_at >= since
            ]


@dataclass
class WashSaleCheck:
    """Outcome of a wash sale check for one symbol."""
    risk: bool = False
    checked: bool = False
    recent_sales: int = 0
    reason: str = ""


class WashSaleChecker:
    """Checks sell history for recent sales of the same symbol."""

    def __init__(
        self,
        history: Optional[SellHistorySource] = None,
        config: Optional[WashSaleConfig] = None,
    ) -> None:
        self.history = history
        self.config = config or DEFAULT_WASH_SALE_CONFIG

    def window(self, as_of: datetime) -> tuple[datetime, datetime]:
        """Return the (start, end) of the wash sale window around ``as_of``."""
        return (
            as_of - timedelta(days=self.config.lookback_days),
            as_of + timedelta(days=self.config.lookforward_days),
        )

    def check(self, owner_id: str, symbol: str, as_of: datetime) -> WashSaleCheck:
        """Check whether selling ``symbol`` now risks a wash sale."""
        if self.history is None:
            return WashSaleCheck(reason=NO_SELL_HISTORY)

        since = as_of - timedelta(days=self.config.lookback_days)
        try:
            recent = [r for r in self.history.sales(owner_id, symbol, since) if r.sold_at <= as_of]
        except LotwatchError as exc:
            logger.warning(
                "Sell history unavailable for %s/%s: %s", owner_id, symbol, exc.message,
                extra={"symbol": symbol},
            )
            return WashSaleCheck(reason=NO_SELL_HISTORY)
        except Exception as exc:
            logger.warning(
                "Sell history error for %s/%s: %s", owner_id, symbol, exc,
                extra={"symbol": symbol},
            )
            return WashSaleCheck(reason=NO_SELL_HISTORY)

        if recent:
            return WashSaleCheck(
                risk=True,
                checked=True,
                recent_sales=len(recent),
                reason=f"{symbol} sold {len(recent)} time(s) in the last {self.config.lookback_days} days",
            )
        return WashSaleCheck(checked=True)
