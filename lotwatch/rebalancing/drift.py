"""Drift Monitor.

Computes current allocation percentages and their drift from a target
allocation.
"""

import logging
from typing import Mapping

from lotwatch.errors import ConfigurationError, DataUnavailableError
from lotwatch.rebalancing.models import AllocationDrift

logger = logging.getLogger(__name__)


def normalize_targets(target_allocation: Mapping[str, object]) -> dict[str, float]:
    """Upper-case symbols and coerce percentages to floats.

    Raises:
        ConfigurationError: If a percentage is not a non-negative number.
    """
    targets: dict[str, float] = {}
    for symbol, pct in target_allocation.items():
        try:
            value = float(pct)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Target allocation for {symbol} is not a number: {pct!r}",
                field="target_allocation",
            ) from None
        if value < 0:
            raise ConfigurationError(
                f"Target allocation for {symbol} is negative: {value}",
                field="target_allocation",
            )
        targets[str(symbol).upper()] = value
    return targets


class DriftMonitor:
    """Measures allocation drift against targets."""

    def current_allocation(self, values: Mapping[str, float]) -> dict[str, float]:
        """Percent of total value per symbol.

        Raises:
            DataUnavailableError: If the total value is not positive.
        """
        total = sum(values.values())
        if total <= 0:
            raise DataUnavailableError("Portfolio has no value to allocate", source="portfolio")
        return {symbol: value / total * 100 for symbol, value in values.items()}

    def compute_drift(
        self,
        current: Mapping[str, float],
        targets: Mapping[str, float],
    ) -> list[AllocationDrift]:
        """Drift for every target symbol, in target order.

        Symbols held but absent from the targets are not drifted against.
        """
        return [
            AllocationDrift(symbol=symbol, current_pct=current.get(symbol, 0.0), target_pct=target)
            for symbol, target in targets.items()
        ]
