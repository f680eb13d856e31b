"""Portfolio Configuration."""

from enum import Enum

LONG_TERM_DAYS = 365


class HoldingPeriod(str, Enum):
    """Tax holding period classification."""
    SHORT_TERM = "short_term"  # < 365 days
    LONG_TERM = "long_term"    # >= 365 days
