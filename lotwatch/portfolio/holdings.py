"""Holdings source collaborator."""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Iterable, Optional

from lotwatch.portfolio.models import HoldingRecord


class HoldingsSource(ABC):
    """Source of an owner's recorded purchase lots."""

    @abstractmethod
    def get_holdings(self, owner_id: str) -> list[HoldingRecord]:
        """Return the owner's holding records (possibly empty).

        Raises:
            DataUnavailableError: If the source cannot be read.
        """


class InMemoryHoldingsSource(HoldingsSource):
    """Holdings kept in memory, organized by owner_id."""

    def __init__(self, records: Optional[Iterable[HoldingRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, list[HoldingRecord]] = defaultdict(list)
        for record in records or []:
            self.add(record)

    def add(self, record: HoldingRecord) -> None:
        with self._lock:
            self._records[record.owner_id].append(record)

    def get_holdings(self, owner_id: str) -> list[HoldingRecord]:
        with self._lock:
            return list(self._records.get(owner_id, []))
