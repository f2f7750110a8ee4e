"""
Structured logging with correlation IDs for the transfer engine.

Export and import cascades fan out across many collections at once, so every
log line carries the correlation/request IDs of the top-level call that
started it. IDs live in context variables, which asyncio copies into each
task spawned by the fan-out.
"""

import logging
import uuid
import time
import threading
import contextvars
from typing import Dict, Any, Optional
from enum import Enum
import structlog
import json


correlation_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)

request_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)

user_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "user_id", default=None
)

_structlog_lock = threading.Lock()
_structlog_configured = False


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class CorrelationIdProcessor:
    """Processor to add correlation ID to log records."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = correlation_id_context.get()
        if correlation_id:
            event_dict["correlation_id"] = correlation_id

        request_id = request_id_context.get()
        if request_id:
            event_dict["request_id"] = request_id

        user_id = user_id_context.get()
        if user_id:
            event_dict["user_id"] = user_id

        return event_dict


class TimestampProcessor:
    """Processor to add consistent timestamps."""

    def __call__(self, logger, method_name, event_dict):
        event_dict["timestamp"] = time.time()
        event_dict["timestamp_iso"] = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        return event_dict


class TransferEngineFormatter:
    """Fill in the fields every transfer log event is expected to carry."""

    def __call__(self, logger, method_name, event_dict):
        event_dict.setdefault("level", method_name)
        event_dict.setdefault("logger", getattr(logger, "name", None))
        event_dict["thread_name"] = threading.current_thread().name
        return event_dict


class StructuredLogger:
    """
    Structured logger with correlation ID support.

    Wraps a structlog bound logger; the component name is bound once at
    construction so every event of e.g. the export orchestrator is tagged
    ``component="CascadeExporter"``.
    """

    def __init__(
        self, name: str, component: Optional[str] = None, log_level: LogLevel = LogLevel.INFO
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            component: Component name for logging context
            log_level: Minimum log level to emit
        """
        self.name = name
        self.component = component or name
        self.log_level = log_level

        _configure_structlog()

        self.logger = structlog.get_logger(name).bind(component=self.component)

    def _log(self, level: LogLevel, message: str, **kwargs):
        getattr(self.logger, level.value)(message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """Log error message with optional exception."""
        if error:
            kwargs.update(
                {
                    "error_type": type(error).__name__,
                    "error_message": str(error),
                }
            )
        self._log(LogLevel.ERROR, message, **kwargs)

    def with_context(self, **context) -> "StructuredLogger":
        """Create a new logger with additional context."""
        new_logger = StructuredLogger(self.name, self.component, self.log_level)
        new_logger.logger = self.logger.bind(**context)
        return new_logger


def _configure_structlog():
    """Configure structlog processors once per process."""
    global _structlog_configured
    if _structlog_configured:
        return

    with _structlog_lock:
        if _structlog_configured:
            return

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                TimestampProcessor(),
                CorrelationIdProcessor(),
                TransferEngineFormatter(),
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _structlog_configured = True


class CorrelationIdManager:
    """Manager for correlation ID lifecycle."""

    @staticmethod
    def generate_correlation_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def generate_request_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        return correlation_id_context.get()

    @staticmethod
    def get_request_id() -> Optional[str]:
        return request_id_context.get()

    @staticmethod
    def get_user_id() -> Optional[str]:
        return user_id_context.get()

    @staticmethod
    def clear_context():
        """Clear all context variables."""
        correlation_id_context.set(None)
        request_id_context.set(None)
        user_id_context.set(None)


class LoggingContext:
    """Context manager binding correlation IDs for one transfer call."""

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ):
        """
        Initialize logging context.

        Args:
            correlation_id: Correlation ID (generated if not provided)
            request_id: Request ID (generated if not provided)
            user_id: User ID for request
        """
        self.correlation_id = correlation_id or CorrelationIdManager.generate_correlation_id()
        self.request_id = request_id or CorrelationIdManager.generate_request_id()
        self.user_id = user_id
        self._tokens = []

    @classmethod
    def from_mapping(cls, context: Optional[Dict[str, Any]]) -> "LoggingContext":
        """Build a logging context from caller-supplied request metadata."""
        context = context or {}
        return cls(
            correlation_id=context.get("correlation_id"),
            request_id=context.get("request_id"),
            user_id=context.get("user_id"),
        )

    def __enter__(self):
        self._tokens = [
            (correlation_id_context, correlation_id_context.set(self.correlation_id)),
            (request_id_context, request_id_context.set(self.request_id)),
        ]
        if self.user_id:
            self._tokens.append((user_id_context, user_id_context.set(self.user_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


class OperationLogger:
    """Logger for tracking operations with timing."""

    def __init__(self, logger: StructuredLogger, operation: str):
        """
        Initialize operation logger.

        Args:
            logger: Structured logger instance
            operation: Operation name
        """
        self.logger = logger
        self.operation = operation
        self.start_time = None
        self.context = {}

    def start(self, **context):
        self.start_time = time.time()
        self.context = context
        self.logger.debug(
            f"Starting operation: {self.operation}",
            operation=self.operation,
            operation_status="started",
            **context,
        )

    def success(self, **additional_context):
        if self.start_time:
            duration_ms = (time.time() - self.start_time) * 1000
            self.logger.info(
                f"Operation completed successfully: {self.operation}",
                operation=self.operation,
                operation_status="success",
                duration_ms=duration_ms,
                **self.context,
                **additional_context,
            )

    def error(self, error: Exception, **additional_context):
        if self.start_time:
            duration_ms = (time.time() - self.start_time) * 1000
            self.logger.error(
                f"Operation failed: {self.operation}",
                error=error,
                operation=self.operation,
                operation_status="error",
                duration_ms=duration_ms,
                **self.context,
                **additional_context,
            )

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.error(exc_val)
        else:
            self.success()


class JSONFormatter(logging.Formatter):
    """JSON formatter for standard library logging integration."""

    def format(self, record):
        log_entry = {
            "timestamp": record.created,
            "timestamp_iso": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = CorrelationIdManager.get_correlation_id()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id

        request_id = CorrelationIdManager.get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        user_id = CorrelationIdManager.get_user_id()
        if user_id:
            log_entry["user_id"] = user_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def get_logger(name: str, component: Optional[str] = None) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name
        component: Component name for context

    Returns:
        Configured structured logger
    """
    return StructuredLogger(name, component)


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
):
    """
    Configure global logging settings.

    Args:
        log_level: Minimum log level
        json_format: Whether to use JSON formatting
        log_format: Format string used when json_format is False
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(log_format)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
