"""Retry on transient failure.

Decorator that re-runs a call a fixed number of times, with a constant
pause between attempts, when it raises one of the retryable exceptions.
"""

import functools
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Optional, Tuple, Type

from lotwatch.resilience.config import STATE_CONFLICT_RETRY, RetryConfig

logger = logging.getLogger(__name__)


class MaxRetriesExceeded(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(self, attempts: int, last_exception: Exception):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"Max retries ({attempts}) exceeded. "
            f"Last error: {last_exception}"
        )


def retry(
    max_retries: Optional[int] = None,
    delay: Optional[float] = None,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    config: Optional[RetryConfig] = None,
) -> Callable:
    """Decorator that retries a function on failure.

    Args:
        max_retries: Maximum number of retry attempts.
        delay: Pause in seconds before each retry.
        retryable_exceptions: Exception types that trigger a retry.
        config: Base RetryConfig; explicit params override its fields.

    Usage:
        @retry(max_retries=1, retryable_exceptions=(StateConflictError,))
        def claim():
            ...
    """
    cfg = config or STATE_CONFLICT_RETRY
    overrides = {
        "max_retries": max_retries,
        "delay": delay,
        "retryable_exceptions": retryable_exceptions,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        cfg = replace(cfg, **overrides)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exc: Optional[Exception] = None
            for attempt in range(cfg.max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except cfg.retryable_exceptions as exc:
                    last_exc = exc
                    if attempt >= cfg.max_retries:
                        logger.warning(
                            "All %d retries exhausted for %s: %s",
                            cfg.max_retries, func.__name__, exc,
                        )
                        break
                    logger.info(
                        "Retry %d/%d for %s: %s",
                        attempt + 1, cfg.max_retries, func.__name__, exc,
                    )
                    if cfg.delay > 0:
                        time.sleep(cfg.delay)
            raise MaxRetriesExceeded(cfg.max_retries, last_exc)  # type: ignore[arg-type]

        wrapper._retry_config = cfg  # type: ignore[attr-defined]
        return wrapper

    return decorator
