"""Portfolio snapshots.

Joins an owner's holding records with current prices. A lot whose
price cannot be looked up is excluded and logged; it never fails the
snapshot as a whole.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from lotwatch.errors import DataUnavailableError, LotwatchError, NoHoldingsError
from lotwatch.market.oracle import PriceQuote
from lotwatch.portfolio.holdings import HoldingsSource
from lotwatch.portfolio.models import Lot, PortfolioSnapshot

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], PriceQuote]


class PortfolioSnapshotter:
    """Builds PortfolioSnapshot objects from holdings and a price lookup.

    Args:
        holdings: Source of holding records.
        price_lookup: Returns a PriceQuote for a symbol or raises
            DataUnavailableError. Normally ``PassPriceCache.get``.
    """

    def __init__(self, holdings: HoldingsSource, price_lookup: PriceLookup) -> None:
        self.holdings = holdings
        self.price_lookup = price_lookup

    def snapshot(self, owner_id: str, as_of: Optional[datetime] = None) -> PortfolioSnapshot:
        """Value every lot the owner holds.

        Args:
            owner_id: Owner whose holdings to value.
            as_of: Snapshot timestamp (defaults to now, UTC).

        Returns:
            PortfolioSnapshot with priced lots and excluded symbols.

        Raises:
            NoHoldingsError: If the owner holds nothing.
            DataUnavailableError: If the holdings source fails.
        """
        try:
            records = self.holdings.get_holdings(owner_id)
        except LotwatchError:
            raise
        except Exception as exc:
            raise DataUnavailableError(
                f"Holdings unavailable for {owner_id}: {exc}", source="holdings", key=owner_id,
            ) from exc

        records = [r for r in records if r.quantity > 0]
        if not records:
            raise NoHoldingsError(owner_id)

        snapshot = PortfolioSnapshot(owner_id=owner_id, as_of=as_of or datetime.now(timezone.utc))
        excluded: set[str] = set()

        for record in records:
            symbol = record.symbol.upper()
            try:
                quote = self.price_lookup(symbol)
            except LotwatchError as exc:
                excluded.add(symbol)
                logger.warning(
                    "Excluding %s from %s snapshot: %s", symbol, owner_id, exc.message,
                    extra={"symbol": symbol, "error_code": exc.error_code.value},
                )
                continue
            snapshot.lots.append(Lot.from_record(record, quote.price, quote.change_24h))

        snapshot.excluded_symbols = sorted(excluded)
        logger.debug(
            "Snapshot for %s: %d lots valued, %d symbols excluded",
            owner_id, len(snapshot.lots), len(excluded),
        )
        return snapshot
