"""
Logging configuration with verbosity control and multiple handlers.

Supports console, file and rotating-file output in structured (JSON), simple
or detailed text formats. Configuration comes from the environment
(``MDSTREAM_LOG_*``) or from command-line options via ``build_logging_config``.
"""

import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from mdstream.app_logger import AppLogger, LogContext, format_log_message

DEFAULT_LOG_FILE = "logs/mdstream.log"


class LogHandler(Enum):
    """Available log handler types."""

    CONSOLE = "console"
    FILE = "file"
    ROTATING_FILE = "rotating"
    NULL = "null"


class LogFormat(Enum):
    """Available log format types."""

    STRUCTURED = "json"
    SIMPLE = "simple"
    DETAILED = "detailed"


class VerbosityLevel(Enum):
    """Verbosity levels for controlling log output."""

    SILENT = 0  # CRITICAL only
    QUIET = 1  # Errors and warnings
    NORMAL = 2
    VERBOSE = 3
    VERY_VERBOSE = 4


VERBOSITY_LEVELS = {
    VerbosityLevel.SILENT: "CRITICAL",
    VerbosityLevel.QUIET: "WARNING",
    VerbosityLevel.NORMAL: "INFO",
    VerbosityLevel.VERBOSE: "DEBUG",
    VerbosityLevel.VERY_VERBOSE: "DEBUG",
}

VERBOSITY_NAMES = {
    "silent": VerbosityLevel.SILENT,
    "quiet": VerbosityLevel.QUIET,
    "normal": VerbosityLevel.NORMAL,
    "verbose": VerbosityLevel.VERBOSE,
    "very_verbose": VerbosityLevel.VERY_VERBOSE,
    "v": VerbosityLevel.VERBOSE,
    "vv": VerbosityLevel.VERY_VERBOSE,
}


@dataclass
class HandlerConfig:
    """Configuration for a single log handler."""

    type: LogHandler
    level: Optional[str] = None  # None uses the global level
    format: Optional[LogFormat] = None  # None uses the global format
    filename: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    stream: str = "stderr"
    date_format: str = "%Y-%m-%d %H:%M:%S"


@dataclass
class LoggingConfig:
    """Complete logging configuration."""

    verbosity: VerbosityLevel = VerbosityLevel.NORMAL
    level: Optional[str] = None  # explicit override of the verbosity level
    global_format: LogFormat = LogFormat.STRUCTURED
    logger_name: str = "mdstream"
    handlers: List[HandlerConfig] = field(
        default_factory=lambda: [HandlerConfig(type=LogHandler.CONSOLE)]
    )
    exclude_components: List[str] = field(default_factory=list)

    @property
    def effective_level(self) -> str:
        """The level in force: the explicit override, else the verbosity level."""
        if self.level:
            return self.level.upper()
        return VERBOSITY_LEVELS[self.verbosity]


class ConfigurableAppLogger:
    """Application logger backed by configured handlers and component filters."""

    def __init__(self, config: Optional[LoggingConfig] = None):
        self.config = config or LoggingConfig()
        self._python_logger = logging.getLogger(self.config.logger_name)
        self._handlers: List[logging.Handler] = []
        self._setup_logging()

    def _setup_logging(self) -> None:
        self._python_logger.setLevel(self.config.effective_level)

        for handler in self._handlers:
            self._python_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()

        for handler_config in self.config.handlers:
            handler = self._create_handler(handler_config)
            self._handlers.append(handler)
            self._python_logger.addHandler(handler)

        # Avoid duplicate messages through the root logger
        self._python_logger.propagate = False

    def _create_handler(self, config: HandlerConfig) -> logging.Handler:
        if config.type == LogHandler.CONSOLE:
            stream = sys.stdout if config.stream == "stdout" else sys.stderr
            handler: logging.Handler = logging.StreamHandler(stream)
        elif config.type in (LogHandler.FILE, LogHandler.ROTATING_FILE):
            filename = config.filename or DEFAULT_LOG_FILE
            Path(filename).parent.mkdir(parents=True, exist_ok=True)
            if config.type == LogHandler.FILE:
                handler = logging.FileHandler(filename)
            else:
                handler = logging.handlers.RotatingFileHandler(
                    filename=filename,
                    maxBytes=config.max_bytes,
                    backupCount=config.backup_count,
                )
        elif config.type == LogHandler.NULL:
            handler = logging.NullHandler()
        else:
            raise ValueError(f"Unknown handler type: {config.type}")

        handler.setLevel(config.level or self.config.effective_level)
        handler.setFormatter(
            self._create_formatter(config.format or self.config.global_format, config)
        )
        return handler

    @staticmethod
    def _create_formatter(format_type: LogFormat, config: HandlerConfig) -> logging.Formatter:
        if format_type == LogFormat.SIMPLE:
            return logging.Formatter("%(levelname)s: %(message)s")
        if format_type == LogFormat.DETAILED:
            return logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt=config.date_format,
            )
        # JSON lines are already rendered by format_log_message
        return logging.Formatter("%(message)s")

    def should_log_component(self, component: str) -> bool:
        """Check if a component passes the exclusion filter."""
        return component not in self.config.exclude_components

    def reconfigure(self, new_config: LoggingConfig) -> None:
        """Reconfigure logging with new settings."""
        self.config = new_config
        self._setup_logging()

    def _log(self, level: int, message, context, exc_info=False, **kwargs) -> None:
        if context and not self.should_log_component(context.component):
            return
        structured = self.config.global_format == LogFormat.STRUCTURED
        formatted = format_log_message(message, context, structured, **kwargs)
        self._python_logger.log(level, formatted, exc_info=exc_info)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs) -> None:
        self._log(logging.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs) -> None:
        self._log(logging.INFO, message, context, **kwargs)

    def warning(
        self, message: str, context: Optional[LogContext] = None, **kwargs
    ) -> None:
        self._log(logging.WARNING, message, context, **kwargs)

    def error(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ) -> None:
        self._log(logging.ERROR, message, context, exc_info=exc_info, **kwargs)

    def critical(
        self,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ) -> None:
        self._log(logging.CRITICAL, message, context, exc_info=exc_info, **kwargs)


def parse_handlers(handlers: str, log_file: Optional[str] = None) -> List[HandlerConfig]:
    """
    Parse a comma-separated handler list such as ``"console,rotating"``.

    Unknown names are ignored.
    """
    configs = []
    for name in handlers.split(","):
        name = name.strip().lower()
        try:
            handler_type = LogHandler(name)
        except ValueError:
            continue
        filename = log_file or DEFAULT_LOG_FILE
        if handler_type in (LogHandler.FILE, LogHandler.ROTATING_FILE):
            configs.append(HandlerConfig(type=handler_type, filename=filename))
        else:
            configs.append(HandlerConfig(type=handler_type))
    return configs


def build_logging_config(
    verbose: int = 0,
    quiet: bool = False,
    log_level: Optional[str] = None,
    log_format: str = "simple",
    log_file: Optional[str] = None,
    log_handlers: Optional[str] = None,
    log_exclude: Optional[str] = None,
) -> LoggingConfig:
    """Build a logging configuration from command-line style options."""
    config = LoggingConfig(global_format=LogFormat(log_format.lower()))

    if quiet:
        config.verbosity = VerbosityLevel.QUIET
    elif verbose == 1:
        config.verbosity = VerbosityLevel.VERBOSE
    elif verbose >= 2:
        config.verbosity = VerbosityLevel.VERY_VERBOSE

    if log_level:
        config.level = log_level.upper()

    if log_handlers:
        handler_configs = parse_handlers(log_handlers, log_file)
        if handler_configs:
            config.handlers = handler_configs
    elif log_file:
        config.handlers = [
            HandlerConfig(type=LogHandler.CONSOLE),
            HandlerConfig(type=LogHandler.ROTATING_FILE, filename=log_file),
        ]

    if log_exclude:
        config.exclude_components = [c.strip() for c in log_exclude.split(",")]

    return config


def create_logger_from_env() -> AppLogger:
    """Create logger from ``MDSTREAM_LOG_*`` environment variables."""
    verbosity = os.getenv("MDSTREAM_LOG_VERBOSITY", "normal").lower()
    config = LoggingConfig(
        verbosity=VERBOSITY_NAMES.get(verbosity, VerbosityLevel.NORMAL),
        level=os.getenv("MDSTREAM_LOG_LEVEL"),
    )

    format_str = os.getenv("MDSTREAM_LOG_FORMAT", "json").lower()
    try:
        config.global_format = LogFormat(format_str)
    except ValueError:
        config.global_format = LogFormat.STRUCTURED

    handler_configs = parse_handlers(
        os.getenv("MDSTREAM_LOG_HANDLERS", "console"), os.getenv("MDSTREAM_LOG_FILE")
    )
    if handler_configs:
        config.handlers = handler_configs

    if exclude := os.getenv("MDSTREAM_LOG_EXCLUDE"):
        config.exclude_components = [c.strip() for c in exclude.split(",")]

    return ConfigurableAppLogger(config)
