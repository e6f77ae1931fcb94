#!/usr/bin/env python3
"""Structured logging for StageBackup.

Diagnostics always go to stderr (or a log file) because stdout may be
carrying the archive stream itself. Messages take key/value context which
is rendered after a ``|`` separator and also attached to the record as
``record.context``.

Example:
    >>> logger = Logger(level=LogLevel.INFO)
    >>> logger.warning("Skipping file", path="notes.txt", reason="vanished")
    >>> with logger.add_context(origin="home.list"):
    ...     logger.debug("Retired exclude stage", patterns=2)
"""

import logging
import logging.handlers
import sys
import threading
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, TextIO, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, level: Union["LogLevel", int, str]) -> "LogLevel":
        """Accept a LogLevel, its numeric value or its name.

        Raises:
            ValueError: If ``level`` names no known level
        """
        if isinstance(level, str):
            try:
                return cls[level.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {level}") from None
        return cls(level)


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


class _ContextStack(threading.local):
    """Per-thread stack of context mappings pushed by add_context()."""

    def __init__(self):
        self.frames: List[Dict[str, Any]] = []

    def merged(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for frame in self.frames:
            merged.update(frame)
        return merged


class Logger:
    """Key/value logger over a named stdlib logger.

    The underlying ``logging.Logger`` does not propagate, so a backup run
    writes each diagnostic exactly once to the handlers given here.
    """

    def __init__(
        self,
        name: str = "stagebackup",
        level: Union[LogLevel, str] = LogLevel.INFO,
        handlers: Optional[List[logging.Handler]] = None,
    ):
        """Initialize logger.

        Args:
            name: Logger name
            level: Minimum level to emit
            handlers: Handlers to attach (default: one stderr handler)
        """
        self.name = name
        self._context = _ContextStack()
        self.logger = logging.getLogger(name)
        self.logger.propagate = False
        self.set_level(level)

        self.logger.handlers.clear()
        for handler in self.create_stream_handler() if handlers is None else handlers:
            self.add_handler(handler)

    @staticmethod
    def create_stream_handler(stream: Optional[TextIO] = None) -> List[logging.Handler]:
        """Handlers writing to ``stream`` (default: stderr)."""
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(_formatter())
        return [handler]

    @staticmethod
    def create_file_handler(
        filename: Union[str, Path],
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
    ) -> logging.handlers.RotatingFileHandler:
        """Rotating log file handler for ``--log-file``."""
        handler = logging.handlers.RotatingFileHandler(
            filename, maxBytes=max_bytes, backupCount=backup_count
        )
        handler.setFormatter(_formatter())
        return handler

    def add_handler(self, handler: logging.Handler) -> None:
        self.logger.addHandler(handler)

    def remove_handler(self, handler: logging.Handler) -> None:
        self.logger.removeHandler(handler)

    def set_level(self, level: Union[LogLevel, str]) -> None:
        self.logger.setLevel(LogLevel.parse(level))

    def get_level(self) -> LogLevel:
        return LogLevel(self.logger.level)

    def is_enabled_for(self, level: Union[LogLevel, str]) -> bool:
        return self.logger.isEnabledFor(LogLevel.parse(level))

    @contextmanager
    def add_context(self, **kwargs) -> Iterator[None]:
        """Attach key/value pairs to every message logged inside the block."""
        self._context.frames.append(kwargs)
        try:
            yield
        finally:
            self._context.frames.pop()

    def _log(self, level: int, msg: str, context: Dict[str, Any], **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return

        combined = self._context.merged()
        combined.update(context)
        if combined:
            msg = f"{msg} | " + " ".join(f"{k}={v}" for k, v in combined.items())
        self.logger.log(level, msg, extra={"context": combined}, **kwargs)

    def debug(self, msg: str, **context) -> None:
        self._log(logging.DEBUG, msg, context)

    def info(self, msg: str, **context) -> None:
        self._log(logging.INFO, msg, context)

    def warning(self, msg: str, **context) -> None:
        self._log(logging.WARNING, msg, context)

    def error(self, msg: str, **context) -> None:
        self._log(logging.ERROR, msg, context)

    def exception(self, msg: str, exc: Exception, **context) -> None:
        """Log an error with the exception's type, message and traceback."""
        context.update(exception_type=type(exc).__name__, exception_message=str(exc))
        self._log(logging.ERROR, msg, context, exc_info=exc)


_global_logger: Optional[Logger] = None


def get_logger(name: str = "stagebackup") -> Logger:
    """Shared logger used by components that were not handed one."""
    global _global_logger
    if _global_logger is None or _global_logger.name != name:
        _global_logger = Logger(name=name)
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    global _global_logger
    _global_logger = logger
