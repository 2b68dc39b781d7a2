#!/usr/bin/env python3
"""Structured logging for MaskFS.

Every record is a plain message followed by ``key=value`` fields. Fields
come from two places: keyword arguments of the log call, and the context
stack of the calling thread. Request threads push a ``request_id`` when
they start, so all records a request produces can be correlated.

Example:
    >>> logger = Logger(level="DEBUG")
    >>> logger.info("Server listening", port=9888)
    >>> with logger.add_context(request_id="7f3a"):
    ...     logger.debug("Resolved entry", path="cmd/main.go")
"""

import logging
import logging.handlers
import threading
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class LogLevel(IntEnum):
    """Levels accepted by ``--debug`` and ``maskfs.logging.level``."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


class _ContextStack(threading.local):
    """Per-thread stack of context dictionaries."""

    def __init__(self) -> None:
        self.frames: List[Dict[str, Any]] = []

    def merged(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for frame in self.frames:
            fields.update(frame)
        return fields


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def rotating_file_handler(
    filename: Union[str, Path],
    max_bytes: int = LOG_FILE_MAX_BYTES,
    backup_count: int = LOG_FILE_BACKUPS,
) -> logging.handlers.RotatingFileHandler:
    """Open a size-rotated log file.

    Raises:
        OSError: If the file cannot be opened
    """
    handler = logging.handlers.RotatingFileHandler(
        filename, maxBytes=max_bytes, backupCount=backup_count
    )
    handler.setFormatter(_formatter())
    return handler


class Logger:
    """Structured logger wrapping a stdlib ``logging.Logger``.

    The merged fields are also attached to each record as ``record.context``
    for handlers that want them unformatted.
    """

    _context = _ContextStack()

    def __init__(
        self,
        name: str = "maskfs",
        level: Union[LogLevel, str] = LogLevel.INFO,
        handlers: Optional[List[logging.Handler]] = None,
        log_file: Optional[Union[str, Path]] = None,
    ):
        """Create the logger and replace any handlers it had.

        Args:
            name: Name of the underlying stdlib logger
            level: Minimum level, as LogLevel or case-insensitive name
            handlers: Handlers to install; stderr when omitted
            log_file: Rotating file written in addition to the handlers

        Raises:
            KeyError: If ``level`` is not a known level name
            OSError: If ``log_file`` cannot be opened
        """
        self.name = name
        self.logger = logging.getLogger(name)
        self.set_level(level)

        if handlers is None:
            console = logging.StreamHandler()
            console.setFormatter(_formatter())
            handlers = [console]
        else:
            handlers = list(handlers)
        if log_file:
            handlers.append(rotating_file_handler(log_file))

        self.logger.handlers.clear()
        for handler in handlers:
            self.logger.addHandler(handler)

        # Handled here only, never by the root logger
        self.logger.propagate = False

    def add_handler(self, handler: logging.Handler) -> None:
        self.logger.addHandler(handler)

    def set_level(self, level: Union[LogLevel, str]) -> None:
        if isinstance(level, str):
            level = LogLevel[level.upper()]
        self.logger.setLevel(level)

    def get_level(self) -> LogLevel:
        return LogLevel(self.logger.level)

    def is_enabled_for(self, level: Union[LogLevel, str]) -> bool:
        if isinstance(level, str):
            level = LogLevel[level.upper()]
        return self.logger.isEnabledFor(level)

    @contextmanager
    def add_context(self, **fields: Any) -> Iterator[None]:
        """Attach fields to every record logged by this thread inside the block.

        Blocks nest; inner fields override outer ones with the same key.
        """
        self._context.frames.append(fields)
        try:
            yield
        finally:
            self._context.frames.pop()

    def _emit(
        self,
        level: LogLevel,
        msg: str,
        fields: Dict[str, Any],
        exc: Optional[BaseException] = None,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        context = self._context.merged()
        context.update(fields)
        if context:
            msg = f"{msg} | " + " ".join(f"{key}={value}" for key, value in context.items())

        self.logger.log(level, msg, exc_info=exc, extra={"context": context})

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit(LogLevel.DEBUG, msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit(LogLevel.INFO, msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit(LogLevel.WARNING, msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._emit(LogLevel.ERROR, msg, fields)

    def exception(self, msg: str, exc: BaseException, **fields: Any) -> None:
        """Log at ERROR with the traceback of ``exc``.

        The exception type and message are added as fields.
        """
        fields["exception_type"] = type(exc).__name__
        fields["exception_message"] = str(exc)
        self._emit(LogLevel.ERROR, msg, fields, exc=exc)


_global_logger: Optional[Logger] = None


def get_logger(name: str = "maskfs") -> Logger:
    """Return the process-wide logger, creating a default one on first use."""
    global _global_logger
    if _global_logger is None or _global_logger.name != name:
        _global_logger = Logger(name=name)
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Make ``logger`` the one :func:`get_logger` returns."""
    global _global_logger
    _global_logger = logger
