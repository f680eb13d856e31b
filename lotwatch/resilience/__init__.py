"""Resilience Patterns.

Per-call deadlines for external collaborators and a retry decorator
used for state-conflict retries.
"""

from lotwatch.resilience.config import (
    STATE_CONFLICT_RETRY,
    RetryConfig,
)
from lotwatch.resilience.retry import MaxRetriesExceeded, retry
from lotwatch.resilience.timeout import call_with_timeout

__all__ = [
    # Config
    "STATE_CONFLICT_RETRY",
    "RetryConfig",
    # Retry
    "MaxRetriesExceeded",
    "retry",
    # Timeout
    "call_with_timeout",
]
