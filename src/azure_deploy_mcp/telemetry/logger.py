"""
Structured logging for azure-deploy-mcp.

Provides context-aware logging with sensitive data masking. Output goes
to stderr so stdout stays free for the tool-calling protocol stream.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

# Context variable for request-scoped logging context
_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)

REDACTED = "***REDACTED***"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_logging_level(self) -> int:
        """Convert to standard logging level."""
        return getattr(logging, self.value)

    @classmethod
    def from_env(cls, default: LogLevel | None = None) -> LogLevel:
        """Read the level from LOG_LEVEL, falling back to default."""
        raw = os.getenv("LOG_LEVEL", "").upper()
        if raw == "WARN":
            raw = "WARNING"
        try:
            return cls(raw)
        except ValueError:
            return default or cls.INFO


@dataclass
class LogContext:
    """Request-scoped logging context.

    Attributes:
        correlation_id: Identifier shared by every log line of one tool call
        operation: Tool or remote operation name
        resource_id: Resource the operation targets
        extra: Additional context fields
    """

    correlation_id: str | None = None
    operation: str | None = None
    resource_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        if self.operation:
            result["operation"] = self.operation
        if self.resource_id:
            result["resource_id"] = self.resource_id
        result.update(self.extra)
        return result

    def with_extra(self, **kwargs: Any) -> LogContext:
        """Create new context with additional fields."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            resource_id=self.resource_id,
            extra={**self.extra, **kwargs},
        )


def get_log_context() -> LogContext:
    """Get current logging context."""
    data = _log_context.get()
    if not data:
        return LogContext()
    data = dict(data)
    return LogContext(
        correlation_id=data.pop("correlation_id", None),
        operation=data.pop("operation", None),
        resource_id=data.pop("resource_id", None),
        extra=data,
    )


def set_log_context(context: LogContext) -> None:
    """Set logging context for current async context."""
    _log_context.set(context.to_dict())


def clear_log_context() -> None:
    """Clear logging context."""
    _log_context.set(None)


class SensitiveDataMasker:
    """Masks sensitive data in log messages and structured fields."""

    SENSITIVE_KEYS: ClassVar[tuple[str, ...]] = (
        "password",
        "secret",
        "key",
        "token",
        "credential",
        "auth",
    )

    DEFAULT_PATTERNS: ClassVar[list[tuple[str, str]]] = [
        # Bearer tokens
        (r"(Bearer\s+)([^\s\"']+)", rf"\1{REDACTED}"),
        # Authorization headers
        (r"(Authorization[\"']?\s*[:=]\s*[\"']?)([^\"'\s]+)", rf"\1{REDACTED}"),
        # Environment variable assignments
        (r"(AZURE_CLIENT_SECRET=)([^\s]+)", rf"\1{REDACTED}"),
        # Storage connection strings
        (r"(AccountKey=)([^;\s]+)", rf"\1{REDACTED}"),
        # Generic key=value / "key": "value" pairs
        (
            r"((?:client_?secret|password|api[_-]?key)[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)",
            rf"\1{REDACTED}",
        ),
    ]

    def __init__(
        self,
        patterns: list[tuple[str, str]] | None = None,
        sensitive_keys: tuple[str, ...] | None = None,
    ) -> None:
        """Initialize masker with patterns.

        Args:
            patterns: List of (pattern, replacement) tuples
            sensitive_keys: Substrings marking a field name as sensitive
        """
        self._patterns = [
            (re.compile(p, re.IGNORECASE), r)
            for p, r in (patterns or self.DEFAULT_PATTERNS)
        ]
        self._sensitive_keys = sensitive_keys or self.SENSITIVE_KEYS

    def is_sensitive_key(self, key: str) -> bool:
        """Check whether a field name looks like it holds a secret."""
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in self._sensitive_keys)

    def mask(self, text: str) -> str:
        """Mask sensitive data in text."""
        result = text
        for pattern, replacement in self._patterns:
            result = pattern.sub(replacement, result)
        return result

    def mask_value(self, value: Any) -> Any:
        """Mask a single value of any supported shape."""
        if isinstance(value, str):
            return self.mask(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [self.mask_value(v) for v in value]
        return value

    def mask_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Mask sensitive data in dictionary.

        Args:
            data: Dictionary to mask

        Returns:
            Masked copy; the input is left untouched
        """
        result: dict[str, Any] = {}
        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = REDACTED
            else:
                result[key] = self.mask_value(value)
        return result


_default_masker = SensitiveDataMasker()


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_timestamp: bool = True,
    ) -> None:
        super().__init__()
        self._masker = masker or _default_masker
        self._include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": self._masker.mask(record.getMessage()),
            "service": "azure-deploy-mcp",
        }

        if self._include_timestamp:
            log_data["timestamp"] = time.strftime(
                "%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)
            ) + f".{int(record.msecs):03d}Z"

        context = get_log_context()
        if context_dict := context.to_dict():
            log_data["context"] = self._masker.mask_dict(context_dict)

        if hasattr(record, "extra_fields"):
            log_data.update(self._masker.mask_dict(record.extra_fields))

        if record.exc_info:
            log_data["exception"] = self._masker.mask(
                self.formatException(record.exc_info)
            )

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_context: bool = True,
    ) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
        self._masker = masker or _default_masker
        self._include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text."""
        original_msg = record.msg
        record.msg = self._masker.mask(str(record.msg))

        result = super().format(record)

        record.msg = original_msg

        fields: dict[str, Any] = {}
        if self._include_context:
            fields.update(get_log_context().to_dict())
        if hasattr(record, "extra_fields"):
            fields.update(record.extra_fields)
        if fields:
            masked = self._masker.mask_dict(fields)
            result = f"{result} | {json.dumps(masked, default=str)}"

        return result


class DeployLogger:
    """Logger with structured fields and redaction at the boundary.

    Field values are masked before the record is created, so no handler,
    including ones added by the host application, ever sees a secret.

    Example:
        >>> logger = DeployLogger.get_logger("azure_deploy_mcp.services")
        >>> logger.info("Resource group created", resource_id="mcp-rg-web")
    """

    _loggers: ClassVar[dict[str, logging.Logger]] = {}
    _level: ClassVar[LogLevel] = LogLevel.from_env()
    _handler: ClassVar[logging.Handler | None] = None
    _masker: ClassVar[SensitiveDataMasker] = _default_masker

    @classmethod
    def configure(
        cls,
        level: LogLevel | None = None,
        format: str = "json",
        stream: Any = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        """Configure global logging settings.

        Args:
            level: Log level (default: LOG_LEVEL env or INFO)
            format: Output format ('json' or 'text')
            stream: Output stream (default: stderr)
            masker: Sensitive data masker
        """
        cls._level = level or LogLevel.from_env()
        if masker is not None:
            cls._masker = masker

        formatter: logging.Formatter
        if format == "json":
            formatter = JsonFormatter(masker=cls._masker)
        else:
            formatter = TextFormatter(masker=cls._masker)

        cls._handler = logging.StreamHandler(stream or sys.stderr)
        cls._handler.setFormatter(formatter)
        cls._handler.setLevel(cls._level.to_logging_level())

        for logger in cls._loggers.values():
            logger.handlers.clear()
            logger.addHandler(cls._handler)
            logger.setLevel(cls._level.to_logging_level())

    @classmethod
    def get_logger(cls, name: str) -> DeployLogger:
        """Get or create a logger."""
        if name not in cls._loggers:
            logger = logging.getLogger(name)
            logger.setLevel(cls._level.to_logging_level())

            if cls._handler:
                logger.handlers.clear()
                logger.addHandler(cls._handler)
            elif not logger.handlers:
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(JsonFormatter())
                logger.addHandler(handler)

            logger.propagate = False
            cls._loggers[name] = logger

        return cls(cls._loggers[name])

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self, level: int, msg: str, exc_info: bool = False, **kwargs: Any
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {"extra_fields": self._masker.mask_dict(kwargs)} if kwargs else {}
        self._logger.log(level, self._masker.mask(msg), exc_info=exc_info, extra=extra)

    def log(self, level: LogLevel, msg: str, **kwargs: Any) -> None:
        """Log at a level chosen at runtime."""
        self._log(level.to_logging_level(), msg, **kwargs)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, exc_info=True, **kwargs)


def get_logger(name: str) -> DeployLogger:
    """Get a logger instance."""
    return DeployLogger.get_logger(name)


def configure_logging(
    level: LogLevel | None = None,
    format: str = "json",
    stream: Any = None,
) -> None:
    """Configure every azure-deploy-mcp logger at once."""
    DeployLogger.configure(level=level, format=format, stream=stream)
