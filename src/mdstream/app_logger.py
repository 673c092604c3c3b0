"""
Structured application logger used by every mdstream component.

Components log through an ``AppLogger`` together with a ``LogContext`` that
names the component, the operation in progress and, for pipeline runs, the
run id (as ``correlation_id``) and the document being processed.
"""

import json
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Protocol


@dataclass
class LogContext:
    """Structured log context information."""

    component: str
    operation: Optional[str] = None
    correlation_id: Optional[str] = None
    document: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging, dropping unset fields."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def for_operation(self, operation: str, **overrides: Any) -> "LogContext":
        """Return a copy of this context for another operation."""
        values = asdict(self)
        values.update(operation=operation, **overrides)
        return LogContext(**values)


class AppLogger(Protocol):
    """Protocol for application logging interface."""

    def debug(
        self, message: str, context: Optional[LogContext] = None, **kwargs
    ) -> None: ...

    def info(
        self, message: str, context: Optional[LogContext] = None, **kwargs
    ) -> None: ...

    def warning(
        self, message: str, context: Optional[LogContext] = None, **kwargs
    ) -> None: ...

    def error(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ) -> None: ...

    def critical(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ) -> None: ...


def format_log_message(
    message: str,
    context: Optional[LogContext] = None,
    structured: bool = True,
    **kwargs,
) -> str:
    """
    Render a message and its context as a single log line.

    Args:
        message: Human-readable message
        context: Optional structured context
        structured: JSON output when True, compact text otherwise
        **kwargs: Additional key/value data

    Returns:
        The formatted log line
    """
    if structured:
        log_data: Dict[str, Any] = {"message": message, "timestamp": time.time()}
        if context:
            log_data.update(context.to_dict())
        if kwargs:
            log_data["additional"] = kwargs
        return json.dumps(log_data, default=str)

    parts = [message]
    if context:
        parts.append(f"[{context.component}]")
        if context.operation:
            parts.append(f"({context.operation})")
        if context.correlation_id:
            parts.append(f"run={context.correlation_id}")
        if context.document:
            parts.append(f"doc={context.document}")
    if kwargs:
        parts.append("[" + ", ".join(f"{k}={v}" for k, v in kwargs.items()) + "]")
    return " ".join(parts)


class NullAppLogger:
    """Null object implementation for testing or disabled logging."""

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs) -> None:
        pass

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs) -> None:
        pass

    def warning(
        self, message: str, context: Optional[LogContext] = None, **kwargs
    ) -> None:
        pass

    def error(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ) -> None:
        pass

    def critical(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ) -> None:
        pass


_default_logger: Optional[AppLogger] = None


def get_default_logger() -> AppLogger:
    """Get the default application logger, configuring it from the environment."""
    global _default_logger
    if _default_logger is None:
        from mdstream.logging_config import create_logger_from_env

        _default_logger = create_logger_from_env()
    return _default_logger


def set_default_logger(logger: Optional[AppLogger]) -> None:
    """Set (or with None, reset) the default application logger."""
    global _default_logger
    _default_logger = logger
