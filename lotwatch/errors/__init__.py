"""Error Handling.

Error codes and the typed exception hierarchy used across components.
"""

from lotwatch.errors.config import (
    ERROR_SEVERITY_MAP,
    ErrorCode,
    ErrorSeverity,
)
from lotwatch.errors.exceptions import (
    ConfigurationError,
    DataUnavailableError,
    LotwatchError,
    NoHoldingsError,
    OperationTimeout,
    SinkFailureError,
    StateConflictError,
)

__all__ = [
    # Config
    "ERROR_SEVERITY_MAP",
    "ErrorCode",
    "ErrorSeverity",
    # Exceptions
    "ConfigurationError",
    "DataUnavailableError",
    "LotwatchError",
    "NoHoldingsError",
    "OperationTimeout",
    "SinkFailureError",
    "StateConflictError",
]
