"""
Structured Logging Configuration for HoopSense
JSON logs for production, colored single-line logs for development.
Every record carries the correlation ID of the request that produced it.
"""

import logging
import json
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextvars import ContextVar

# Correlation ID of the current request (per asyncio task / thread)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# LogRecord attributes that are never copied into the structured payload
RESERVED_ATTRS = frozenset({
    'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename',
    'funcName', 'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'msg', 'name', 'pathname', 'process', 'processName',
    'relativeCreated', 'stack_info', 'thread', 'threadName',
    'taskName', 'correlation_id'
})


def new_correlation_id() -> str:
    """Short random ID used to tie together the logs of one request"""
    return uuid.uuid4().hex[:8]


def get_correlation_id() -> str:
    """Correlation ID of the current context, empty outside a request"""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Bind a correlation ID to the current context"""
    correlation_id_var.set(correlation_id)


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields passed through `extra=` on the logging call"""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in RESERVED_ATTRS and not key.startswith('_')
    }


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, suitable for log aggregators.
    Non-serializable extra values are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", "") or get_correlation_id()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.levelno >= logging.WARNING:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName
            }

        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


class PrettyFormatter(logging.Formatter):
    """Human-readable colored format for local development"""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        correlation_id = getattr(record, "correlation_id", "") or get_correlation_id()
        cid_str = f"[{correlation_id}] " if correlation_id else ""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        message = (
            f"{timestamp} {color}{record.levelname:8}{self.RESET} "
            f"{cid_str}{record.name}: {record.getMessage()}"
        )

        extras = _extra_fields(record)
        if extras:
            message += " | " + ", ".join(f"{key}={value}" for key, value in extras.items())

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class CorrelationFilter(logging.Filter):
    """Stamps the current correlation ID onto every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Configure root logging for the service.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format on the console (production)
        log_file: Optional file path; file output is always JSON
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    correlation_filter = CorrelationFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(correlation_filter)
    console_handler.setFormatter(JSONFormatter() if json_format else PrettyFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.addFilter(correlation_filter)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Model runtimes and servers are chatty at INFO
    for noisy in ("uvicorn", "uvicorn.access", "httpx", "httpcore", "ultralytics", "absl"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={"level": level, "json_format": json_format, "log_file": log_file}
    )


class StructuredLogger:
    """
    Logger wrapper that attaches a fixed context (e.g. session id) to
    every record as extra fields.
    """

    def __init__(self, name: str, default_context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.default_context = default_context or {}

    def _log(self, level: int, message: str, exc_info: bool = False, **extra):
        self.logger.log(level, message, exc_info=exc_info, extra={**self.default_context, **extra})

    def debug(self, message: str, **extra):
        self._log(logging.DEBUG, message, **extra)

    def info(self, message: str, **extra):
        self._log(logging.INFO, message, **extra)

    def warning(self, message: str, **extra):
        self._log(logging.WARNING, message, **extra)

    def error(self, message: str, exc_info: bool = False, **extra):
        self._log(logging.ERROR, message, exc_info=exc_info, **extra)

    def with_context(self, **context) -> "StructuredLogger":
        """Create a new logger with additional context"""
        return StructuredLogger(self.logger.name, {**self.default_context, **context})


class LogTimer:
    """
    Context manager that logs how long an operation took.
    Logs at WARNING when the operation exceeds `slow_ms`.
    """

    def __init__(self, logger: logging.Logger, operation: str, slow_ms: float = 5000.0, **extra):
        self.logger = logger
        self.operation = operation
        self.slow_ms = slow_ms
        self.extra = extra
        self.start_time: Optional[float] = None
        self.duration_ms: float = 0.0

    def __enter__(self) -> "LogTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type:
            self.logger.error(
                f"{self.operation} failed after {self.duration_ms:.2f}ms",
                extra={**self.extra, "duration_ms": self.duration_ms, "error": str(exc_val)}
            )
        else:
            log_level = logging.WARNING if self.duration_ms > self.slow_ms else logging.INFO
            self.logger.log(
                log_level,
                f"{self.operation} completed in {self.duration_ms:.2f}ms",
                extra={**self.extra, "duration_ms": self.duration_ms}
            )

        return False
