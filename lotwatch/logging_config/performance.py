"""Performance Logging.

Decorator and context manager timing evaluation work and flagging
slow operations.
"""

import functools
import logging
import time
from typing import Any, Callable, Optional

from lotwatch.logging_config.config import DEFAULT_LOGGING_CONFIG

logger = logging.getLogger(__name__)


def _log_duration(
    _logger: logging.Logger,
    name: str,
    duration_ms: float,
    threshold_ms: float,
    failed: Optional[BaseException] = None,
) -> None:
    extra = {"duration_ms": round(duration_ms, 2)}
    if failed is not None:
        _logger.error(
            "%s failed after %.1fms: %s", name, duration_ms, type(failed).__name__,
            extra=extra,
        )
    elif duration_ms >= threshold_ms:
        _logger.warning("Slow operation: %s took %.1fms", name, duration_ms, extra=extra)
    else:
        _logger.debug("%s completed in %.1fms", name, duration_ms, extra=extra)


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator that logs function execution time.

    Every call is logged at DEBUG, calls above the threshold at WARNING
    and failing calls at ERROR (the exception is re-raised).

    Args:
        threshold_ms: Slow operation threshold in milliseconds.
                     Defaults to LoggingConfig.slow_threshold_ms.
        logger_name: Custom logger name. Defaults to the function's module.

    Example:
        @log_performance(threshold_ms=500)
        def run_pass(self):
            ...
    """
    if threshold_ms is None:
        threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms

    def decorator(func: Callable) -> Callable:
        _logger = logging.getLogger(logger_name or func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _log_duration(_logger, func.__qualname__, (time.perf_counter() - start) * 1000, threshold_ms, exc)
                raise
            _log_duration(_logger, func.__qualname__, (time.perf_counter() - start) * 1000, threshold_ms)
            return result

        return wrapper

    return decorator


class PerformanceTimer:
    """Context manager for timing code blocks.

    Example:
        with PerformanceTimer("snapshot") as timer:
            snapshot = snapshotter.snapshot(owner_id)
        timer.duration_ms
    """

    def __init__(self, operation_name: str, threshold_ms: Optional[float] = None):
        self.operation_name = operation_name
        self.threshold_ms = threshold_ms or DEFAULT_LOGGING_CONFIG.slow_threshold_ms
        self.start_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        _log_duration(logger, self.operation_name, self.duration_ms, self.threshold_ms, exc_val)
