"""Log levels and the stock log functions."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Callable

_logger = logging.getLogger("dqlitekit")


class LogLevel(IntEnum):
    """Severity of a log message."""

    NONE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    def __str__(self) -> str:
        return self.name


LogFunc = Callable[..., None]


def _render(message: str, args: tuple[Any, ...]) -> str:
    return message % args if args else message


def discard_log(level: LogLevel, message: str, *args: Any) -> None:
    """Drop every message."""


def error_only_log(level: LogLevel, message: str, *args: Any) -> None:
    """Emit only error messages, through the standard logging module."""
    if level != LogLevel.ERROR:
        return
    _logger.error("[%s] dqlite: %s", level, _render(message, args))