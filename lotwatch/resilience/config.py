"""Configuration for resilience patterns."""

from dataclasses import dataclass
from typing import Tuple, Type

from lotwatch.errors import StateConflictError


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry logic.

    The defaults describe the single immediate retry applied when a rule
    state transition loses a race.
    """

    max_retries: int = 1
    delay: float = 0.0  # seconds between attempts
    retryable_exceptions: Tuple[Type[Exception], ...] = (StateConflictError,)


STATE_CONFLICT_RETRY = RetryConfig()
