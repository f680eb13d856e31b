"""Exception Hierarchy.

Typed exceptions raised by collaborators and components. Every failure
inside an evaluation pass is contained per rule and recorded with its
error code, so a single handler can catch the whole hierarchy.
"""

from typing import Any, Dict, List, Optional

from lotwatch.errors.config import ERROR_SEVERITY_MAP, ErrorCode, ErrorSeverity


class LotwatchError(Exception):
    """Base exception for all Lotwatch errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or []

    @property
    def severity(self) -> ErrorSeverity:
        return ERROR_SEVERITY_MAP.get(self.error_code, ErrorSeverity.CRITICAL)

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class DataUnavailableError(LotwatchError):
    """Raised when a price, sentiment, history or portfolio fetch fails."""

    def __init__(
        self,
        message: str = "Data unavailable",
        error_code: ErrorCode = ErrorCode.DATA_UNAVAILABLE,
        source: Optional[str] = None,
        key: Optional[str] = None,
    ):
        details = []
        if source or key:
            details = [{"source": source, "key": key}]
        super().__init__(message, error_code, details)
        self.source = source
        self.key = key


class NoHoldingsError(DataUnavailableError):
    """Raised when an owner has no holdings to snapshot."""

    def __init__(self, owner_id: str):
        super().__init__(
            f"Owner {owner_id} has no holdings",
            ErrorCode.NO_HOLDINGS,
            source="holdings",
            key=owner_id,
        )
        self.owner_id = owner_id


class ConfigurationError(LotwatchError):
    """Raised when a rule field is missing or malformed."""

    def __init__(
        self,
        message: str = "Invalid rule configuration",
        field: Optional[str] = None,
        rule_id: Optional[str] = None,
    ):
        details = []
        if field:
            details = [{"field": field, "issue": message}]
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
        self.field = field
        self.rule_id = rule_id


class StateConflictError(LotwatchError):
    """Raised when a rule state transition loses a concurrent race."""

    def __init__(self, rule_id: str, expected_version: Optional[int] = None):
        super().__init__(
            f"Rule {rule_id} changed concurrently",
            ErrorCode.STATE_CONFLICT,
            [{"rule_id": rule_id, "expected_version": expected_version}],
        )
        self.rule_id = rule_id
        self.expected_version = expected_version


class SinkFailureError(LotwatchError):
    """Raised when a notification cannot be delivered."""

    def __init__(self, message: str = "Notification delivery failed"):
        super().__init__(message, ErrorCode.SINK_FAILURE)


class OperationTimeout(LotwatchError):
    """Raised when a collaborator call exceeds its deadline."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} timed out after {timeout:.2f}s",
            ErrorCode.TIMEOUT,
            [{"operation": operation, "timeout_seconds": timeout}],
        )
        self.operation = operation
        self.timeout = timeout
