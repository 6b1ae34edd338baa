"""Logging configuration for awsrollout."""

import json
import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class LogLevel(str, Enum):
    """Log levels for configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


PACKAGE_LOGGERS = ["awsrollout", "src.awsrollout"]

DEFAULT_SENSITIVE_PATTERNS = [
    r"(?<![A-Z0-9])(?:AKIA|ASIA)[A-Z0-9]{16}(?![A-Z0-9])",
    r"(?i)((?:secret|token|password|credential)[\w-]*[\"']?\s*[=:]\s*[\"']?)[^\s,\"'}]+",
]


@dataclass
class LoggingConfig:
    """Configuration for logging system."""

    level: LogLevel = LogLevel.INFO
    enable_console_logging: bool = True
    enable_file_logging: bool = True
    log_file: str = "~/.awsrollout/logs/awsrollout.log"
    max_file_size_mb: int = 10
    backup_count: int = 5
    structured: bool = False
    log_aws_requests: bool = False
    sensitive_data_patterns: List[str] = field(
        default_factory=lambda: list(DEFAULT_SENSITIVE_PATTERNS)
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], verbose: bool = False) -> "LoggingConfig":
        """Create logging configuration from the ``logging`` config section."""
        level = "DEBUG" if verbose else str(data.get("level", "INFO")).upper()
        try:
            log_level = LogLevel(level)
        except ValueError:
            log_level = LogLevel.INFO

        log_file = data.get("file")
        return cls(
            level=log_level,
            enable_file_logging=bool(log_file),
            log_file=log_file or cls.log_file,
            max_file_size_mb=int(data.get("max_file_size_mb", 10)),
            backup_count=int(data.get("backup_count", 5)),
            structured=bool(data.get("structured", False)),
            log_aws_requests=bool(data.get("boto_logging", False)),
        )


class SensitiveDataFilter(logging.Filter):
    """Filter to redact sensitive data from log messages."""

    def __init__(self, patterns: List[str]) -> None:
        """
        Initialize the filter with sensitive data patterns.

        Args:
            patterns: Regex patterns; a first group, if present, is kept
        """
        super().__init__()
        self.compiled_patterns = [re.compile(pattern) for pattern in patterns]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data in place. Never drops a record."""
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )

        return True

    def redact(self, text: str) -> str:
        """Redact sensitive data from text."""
        for pattern in self.compiled_patterns:
            if pattern.groups:
                text = pattern.sub(lambda m: f"{m.group(1)}[REDACTED]", text)
            else:
                text = pattern.sub("[REDACTED]", text)
        return text


class StructuredFormatter(logging.Formatter):
    """Formatter for structured logging with JSON output."""

    STANDARD_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.STANDARD_ATTRS and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class RolloutLoggingManager:
    """
    Centralized logging setup for awsrollout.

    Log records go to stderr and to a rotating file. User-facing progress is
    printed separately through Rich, so the console handler only shows
    warnings unless verbose logging is requested.
    """

    def __init__(self, config: Optional[LoggingConfig] = None):
        self.config = config or LoggingConfig()
        self._handlers_configured = False

    def setup_logging(self) -> None:
        """Set up logging for the awsrollout package."""
        if self._handlers_configured:
            return

        handlers: List[logging.Handler] = []
        if self.config.enable_console_logging:
            handlers.append(self._create_console_handler())
        if self.config.enable_file_logging:
            file_handler = self._create_file_handler()
            if file_handler is not None:
                handlers.append(file_handler)

        # Module loggers are named src.awsrollout.* when run from a checkout.
        for name in PACKAGE_LOGGERS:
            package_logger = logging.getLogger(name)
            package_logger.setLevel(getattr(logging, self.config.level.value))
            package_logger.handlers.clear()
            for handler in handlers:
                package_logger.addHandler(handler)

        self._configure_aws_logging()
        self._handlers_configured = True

    def _create_console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        if self.config.level == LogLevel.DEBUG:
            handler.setLevel(logging.DEBUG)
        else:
            handler.setLevel(logging.WARNING)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)-8s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler.addFilter(SensitiveDataFilter(self.config.sensitive_data_patterns))
        return handler

    def _create_file_handler(self) -> Optional[logging.Handler]:
        """Create rotating file handler, or None if the log directory is unusable."""
        log_file = Path(self.config.log_file).expanduser()
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.handlers.RotatingFileHandler(
                filename=str(log_file),
                maxBytes=self.config.max_file_size_mb * 1024 * 1024,
                backupCount=self.config.backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            logging.getLogger(__name__).warning(f"File logging disabled: {e}")
            return None

        handler.setLevel(getattr(logging, self.config.level.value))

        formatter: logging.Formatter
        if self.config.structured:
            formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter(
                "[%(asctime)s] %(levelname)-8s - %(name)s - %(threadName)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveDataFilter(self.config.sensitive_data_patterns))
        return handler

    def _configure_aws_logging(self) -> None:
        """Quieten AWS SDK logging unless requested."""
        for logger_name in ["boto3", "botocore", "urllib3", "s3transfer"]:
            logger = logging.getLogger(logger_name)
            logger.setLevel(logging.DEBUG if self.config.log_aws_requests else logging.WARNING)


_global_logging_manager: Optional[RolloutLoggingManager] = None


def setup_rollout_logging(config: Optional[LoggingConfig] = None) -> RolloutLoggingManager:
    """
    Set up logging for a CLI invocation.

    Args:
        config: Logging configuration

    Returns:
        The active logging manager
    """
    global _global_logging_manager
    _global_logging_manager = RolloutLoggingManager(config)
    _global_logging_manager.setup_logging()
    return _global_logging_manager
