"""
Structured logging system with JSON formatting and performance monitoring.

This module provides:
- JSON-structured logging with consistent field names
- Configurable log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Performance timing for cache operations
- Contextual logging (namespace, cache key, pattern)
- Daily log directories with a retention window
"""

import json
import logging
import shutil
import time
from datetime import datetime, timedelta, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union, TypeVar, cast

from lotto_cache.types.models import LogEntry, LogLevel

# Type variable for generic function decorator
F = TypeVar('F', bound=Callable[..., Any])

_PYTHON_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL
}


def _parse_level(level: Union[LogLevel, str]) -> LogLevel:
    if isinstance(level, LogLevel):
        return level
    try:
        return LogLevel[level.upper()]
    except KeyError:
        valid_levels = ", ".join([l.name for l in LogLevel])
        raise ValueError(f"Invalid log level: {level}. Valid levels are: {valid_levels}")


class StructuredLogger:
    """
    Structured logger with JSON formatting and performance monitoring.

    Messages go to Python's logging (console) and, when ``log_dir`` is set,
    to ``<log_dir>/<YYYY-MM-DD>/logs.log``, ``errors.log`` and ``logs.json``.

    Attributes:
        name (str): Logger name
        level (LogLevel): Current log level
        log_dir (Optional[Path]): Directory for log files, None for console only
        retention_days (int): Number of days to keep log directories
        _context (Dict): Context data to include with all log entries
    """

    def __init__(
        self,
        name: str,
        level: Union[LogLevel, str] = LogLevel.INFO,
        log_dir: Optional[Union[str, Path]] = None,
        retention_days: int = 7,
        console: bool = True
    ):
        """
        Initialize a new structured logger.

        Args:
            name: Logger name
            level: Log level (default: INFO)
            log_dir: Directory for log files (default: no files)
            retention_days: Number of days to keep log files
            console: Whether to attach a console handler

        Raises:
            ValueError: If invalid log level is provided
        """
        self.name = name
        self.level = _parse_level(level)
        self.log_dir = Path(log_dir) if log_dir else None
        self.retention_days = retention_days
        self._context: Dict[str, Any] = {}

        self._logger = logging.getLogger(name)
        self._logger.setLevel(_PYTHON_LEVELS[self.level])
        if console and not self._logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(
                '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self._logger.addHandler(console_handler)

        if self.log_dir is not None:
            self._daily_dir().mkdir(parents=True, exist_ok=True)
            self._cleanup_old_logs()

    def _daily_dir(self) -> Path:
        return self.log_dir / datetime.now().strftime("%Y-%m-%d")

    def _cleanup_old_logs(self) -> None:
        """Remove daily log directories older than retention_days."""
        cutoff_date = datetime.now() - timedelta(days=self.retention_days)

        for item in self.log_dir.iterdir():
            if not item.is_dir():
                continue
            try:
                dir_date = datetime.strptime(item.name, "%Y-%m-%d")
            except ValueError:
                # Not a date-formatted directory
                continue
            if dir_date < cutoff_date:
                shutil.rmtree(item, ignore_errors=True)

    def _should_log(self, level: LogLevel) -> bool:
        return _PYTHON_LEVELS[level] >= _PYTHON_LEVELS[self.level]

    def _format_line(self, entry: LogEntry) -> str:
        message = f"[{entry.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] [{entry.level.value}]"
        if entry.service:
            message += f" [{entry.service}]"
        message += f" {entry.message}"

        if entry.context:
            context_str = " ".join([f"{k}={v}" for k, v in entry.context.items()])
            message += f" ({context_str})"

        if entry.operation and entry.duration_ms is not None:
            message += f" [operation={entry.operation}, duration={entry.duration_ms:.2f}ms]"

        if entry.error:
            message += f" [error={entry.error}]"
        return message

    def _write_files(self, entry: LogEntry) -> None:
        daily_dir = self._daily_dir()
        try:
            daily_dir.mkdir(parents=True, exist_ok=True)
            line = self._format_line(entry) + "\n"
            with open(daily_dir / "logs.log", "a", encoding="utf-8") as f:
                f.write(line)
            if entry.level in (LogLevel.ERROR, LogLevel.CRITICAL):
                with open(daily_dir / "errors.log", "a", encoding="utf-8") as f:
                    f.write(line)
            with open(daily_dir / "logs.json", "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), default=str) + "\n")
        except OSError as e:
            # File logging must never break a cache operation
            self._logger.warning(f"Failed to write log files: {e}")

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """
        Set the log level.

        Raises:
            ValueError: If invalid log level is provided
        """
        self.level = _parse_level(level)
        self._logger.setLevel(_PYTHON_LEVELS[self.level])

    def with_context(self, **context: Any) -> 'ContextLogger':
        """Create a new logger that adds ``context`` to every entry."""
        return ContextLogger(self, context)

    def log(
        self,
        level: LogLevel,
        message: str,
        service: Optional[str] = None,
        operation: Optional[str] = None,
        duration_ms: Optional[float] = None,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        """
        Log a message with the specified level and context.

        Args:
            level: Log level
            message: Log message
            service: Service name (optional)
            operation: Operation name for performance logging (optional)
            duration_ms: Operation duration in milliseconds (optional)
            error: Error message or exception (optional)
            **context: Additional context key-value pairs
        """
        if not self._should_log(level):
            return

        error_str = None
        if error is not None:
            if isinstance(error, Exception):
                error_str = f"{type(error).__name__}: {str(error)}"
            else:
                error_str = str(error)

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            context={**self._context, **context},
            service=service,
            operation=operation,
            duration_ms=duration_ms,
            error=error_str
        )

        if self.log_dir is not None:
            self._write_files(entry)

        console_message = message
        if entry.context:
            console_message += " (" + " ".join(f"{k}={v}" for k, v in entry.context.items()) + ")"
        if error_str:
            console_message += f" [error={error_str}]"
        self._logger.log(_PYTHON_LEVELS[level], console_message)

    def debug(self, message: str, **context: Any) -> None:
        self.log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self.log(LogLevel.INFO, message, **context)

    def warning(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.WARNING, message, error=error, **context)

    def error(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.ERROR, message, error=error, **context)

    def performance(self, operation: str, duration_ms: float, **context: Any) -> None:
        """
        Log a performance metric at DEBUG level.

        Cache operations are frequent, so timings stay out of INFO output.
        """
        self.log(
            LogLevel.DEBUG,
            f"Performance: {operation} completed in {duration_ms:.2f}ms",
            operation=operation,
            duration_ms=duration_ms,
            **context
        )


class ContextLogger:
    """
    Logger with additional context.

    Wraps a StructuredLogger and merges a fixed context into every entry.
    """

    def __init__(self, logger: StructuredLogger, context: Dict[str, Any]):
        self._logger = logger
        self._context = context

    def with_context(self, **context: Any) -> 'ContextLogger':
        return ContextLogger(self._logger, {**self._context, **context})

    def log(self, level: LogLevel, message: str, **kwargs: Any) -> None:
        context = {**self._context, **kwargs}
        self._logger.log(level, message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self.log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self.log(LogLevel.INFO, message, **context)

    def warning(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.WARNING, message, error=error, **context)

    def error(
        self,
        message: str,
        error: Optional[Union[str, Exception]] = None,
        **context: Any
    ) -> None:
        self.log(LogLevel.ERROR, message, error=error, **context)

    def performance(self, operation: str, duration_ms: float, **context: Any) -> None:
        self._logger.performance(operation, duration_ms, **{**self._context, **context})


def timed(operation_name: str) -> Callable[[F], F]:
    """
    Decorator to time method execution and log performance.

    The logger is taken from ``self.logger`` of the decorated method's
    instance; functions without one run untimed.

    Args:
        operation_name: Name of the operation for logging
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            logger = None
            if args and isinstance(getattr(args[0], 'logger', None), (StructuredLogger, ContextLogger)):
                logger = args[0].logger

            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                if logger is not None:
                    duration_ms = (time.perf_counter() - start_time) * 1000
                    logger.performance(operation_name, duration_ms)

        return cast(F, wrapper)
    return decorator
