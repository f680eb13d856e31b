"""Error Configuration.

Error codes and severity levels shared by the exception hierarchy and
the per-rule failure records of an evaluation pass.
"""

from enum import Enum
from typing import Dict


class ErrorCode(Enum):
    """Standardized error codes for failures inside the engine."""

    # Upstream data
    DATA_UNAVAILABLE = "DATA_UNAVAILABLE"
    NO_HOLDINGS = "NO_HOLDINGS"

    # Rule definition
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Rule state
    STATE_CONFLICT = "STATE_CONFLICT"

    # Delivery
    SINK_FAILURE = "SINK_FAILURE"

    # Deadlines
    TIMEOUT = "TIMEOUT"

    # Anything else
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(Enum):
    """Severity levels for error logging."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.DATA_UNAVAILABLE: ErrorSeverity.MEDIUM,
    ErrorCode.NO_HOLDINGS: ErrorSeverity.LOW,
    ErrorCode.CONFIGURATION_ERROR: ErrorSeverity.LOW,
    ErrorCode.STATE_CONFLICT: ErrorSeverity.MEDIUM,
    ErrorCode.SINK_FAILURE: ErrorSeverity.HIGH,
    ErrorCode.TIMEOUT: ErrorSeverity.MEDIUM,
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
}
