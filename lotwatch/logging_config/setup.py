"""Logging Setup.

One-call configuration for structured logging. JSON output for
scheduled/production runs and colored console output for local use.
"""

import json
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from lotwatch.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel
from lotwatch.logging_config.context import get_context_dict

# Attributes copied from a record's ``extra`` into the JSON entry
_EXTRA_FIELDS = ("duration_ms", "error_code", "symbol", "outcome", "extra_data")


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    One JSON object per line: timestamp, level, logger, message, service,
    plus the bound pass context (pass_id, rule_id, owner_id).
    """

    def __init__(self, service_name: str = "lotwatch", include_caller: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if self.include_caller:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        ctx = get_context_dict()
        if ctx:
            log_entry.update(ctx)

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored, human-readable formatter for local runs."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S.%f")[:-3]

        ctx = get_context_dict()
        ctx_str = ""
        if ctx:
            ctx_str = " [" + ", ".join(f"{k}={v}" for k, v in ctx.items()) + "]"

        if self.use_color:
            color = self.COLORS.get(record.levelname, self.RESET)
            level = f"{color}{record.levelname:8s}{self.RESET}"
        else:
            level = f"{record.levelname:8s}"

        line = f"{timestamp} {level} {record.name}: {record.getMessage()}{ctx_str}"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)

        return line


def _apply_env_overrides(config: LoggingConfig) -> LoggingConfig:
    env_level = os.environ.get("LOTWATCH_LOG_LEVEL", "").upper()
    if env_level in LogLevel.__members__:
        config = replace(config, level=LogLevel(env_level))

    env_format = os.environ.get("LOTWATCH_LOG_FORMAT", "").lower()
    if env_format in [f.value for f in LogFormat]:
        config = replace(config, format=LogFormat(env_format))

    return config


def build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format == LogFormat.JSON:
        return StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    return ConsoleFormatter(use_color=sys.stderr.isatty())


def configure_logging(config: Optional[LoggingConfig] = None) -> LoggingConfig:
    """Configure structured logging for the process.

    Call once at startup. Installs a single stderr handler on the root
    logger with the JSON or console formatter.

    Args:
        config: Logging configuration. Uses defaults if not provided.
                LOTWATCH_LOG_LEVEL and LOTWATCH_LOG_FORMAT override it.

    Returns:
        The effective configuration after environment overrides.
    """
    config = _apply_env_overrides(config or DEFAULT_LOGGING_CONFIG)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(config))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.value))

    for noisy in config.quiet_loggers:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return config


def get_logger(name: str) -> logging.Logger:
    """Return a standard library logger; output follows configure_logging()."""
    return logging.getLogger(name)
