"""Per-call deadlines.

Runs a collaborator call on a helper thread and gives up waiting after
the deadline. The helper thread is abandoned rather than joined, so a
hung oracle or sink cannot stall an evaluation pass.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Optional

from lotwatch.errors import OperationTimeout

logger = logging.getLogger(__name__)


def call_with_timeout(
    func: Callable[..., Any],
    timeout: Optional[float],
    *args: Any,
    name: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """Call ``func(*args, **kwargs)``, raising OperationTimeout past the deadline.

    Args:
        func: Callable to run.
        timeout: Deadline in seconds. None or a non-positive value calls
            ``func`` inline without a deadline.
        name: Operation name used in the error and log message.

    Returns:
        Whatever ``func`` returns. Exceptions raised by ``func`` propagate.

    Raises:
        OperationTimeout: If the call did not finish in time.
    """
    if timeout is None or timeout <= 0:
        return func(*args, **kwargs)

    operation = name or getattr(func, "__qualname__", repr(func))
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lotwatch-call")
    try:
        future = executor.submit(func, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            logger.warning("%s exceeded %.2fs deadline", operation, timeout)
            raise OperationTimeout(operation, timeout) from None
    finally:
        executor.shutdown(wait=False)
