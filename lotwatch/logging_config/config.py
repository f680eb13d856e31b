"""Logging Configuration.

Log levels, output formats, and the structured logging config.
"""

from dataclasses import dataclass, field
from enum import Enum


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    slow_threshold_ms: float = 1000.0
    service_name: str = "lotwatch"
    quiet_loggers: list[str] = field(
        default_factory=lambda: ["sqlalchemy.engine", "urllib3", "asyncio"]
    )


DEFAULT_LOGGING_CONFIG = LoggingConfig()
