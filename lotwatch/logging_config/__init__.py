"""Structured Logging & Pass Tracing.

JSON or console log output, pass/rule/owner id propagation, and
performance timing for evaluation passes.
"""

from lotwatch.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel
from lotwatch.logging_config.context import (
    PassContext,
    RuleContext,
    generate_pass_id,
    get_context_dict,
)
from lotwatch.logging_config.performance import PerformanceTimer, log_performance
from lotwatch.logging_config.setup import (
    ConsoleFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "DEFAULT_LOGGING_CONFIG",
    "ConsoleFormatter",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "PassContext",
    "PerformanceTimer",
    "RuleContext",
    "StructuredFormatter",
    "configure_logging",
    "generate_pass_id",
    "get_context_dict",
    "get_logger",
    "log_performance",
]
