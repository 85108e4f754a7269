"""Levelled console logging for the capture tools."""

from __future__ import annotations

import inspect
import os
import sys
from enum import IntEnum


class Priority(IntEnum):
    """Message priorities; lower values are more severe."""

    EMERG = 0
    FATAL = 0
    ALERT = 100
    CRIT = 200
    ERROR = 300
    WARN = 400
    NOTICE = 500
    INFO = 600
    DEBUG = 700
    NOTSET = 800


_VERBOSITY_LEVELS = {2: Priority.DEBUG, 1: Priority.INFO}


class _Settings:
    level: Priority = Priority.NOTICE


_settings = _Settings()


def get_log_level() -> Priority:
    """Return the current threshold priority."""
    return _settings.level


def set_log_level(verbose: int) -> None:
    """Set the threshold from a verbosity count (0, 1 or 2)."""
    _settings.level = _VERBOSITY_LEVELS.get(verbose, Priority.NOTICE)


def init_logger(verbose: int) -> None:
    """Set the threshold and announce it on standard output."""
    set_log_level(verbose)
    print(f"log level:{int(_settings.level)}", file=sys.stdout, flush=True)


def _caller_location() -> str:
    frame = inspect.currentframe()
    caller = frame.f_back.f_back if frame is not None and frame.f_back is not None else None
    if caller is None:
        return "(?:0)"
    filename = os.path.basename(caller.f_code.co_filename)
    return f"({filename}:{caller.f_lineno})"


def log(level: int, message: str) -> bool:
    """Write ``message`` if ``level`` passes the threshold; return whether it was written."""
    priority = Priority(level)
    if priority > _settings.level:
        return False
    tag = f"[{priority.name}]"
    location = _caller_location()
    sys.stdout.write(f"\n{tag:<8} {location:<30}\t{message}")
    sys.stdout.flush()
    return True