"""
Logging setup for the monoinstall CLI.

``setup_logging()`` runs once when the CLI starts; modules only ever do
``logger = logging.getLogger(__name__)``.

Console level, highest priority first:
    --debug, --verbose, --quiet, $MONOINSTALL_LOG_LEVEL, WARNING

$MONOINSTALL_LOG_FILE adds a file handler, at $MONOINSTALL_LOG_FILE_LEVEL
(or the console level).  The installer's own output is not logged: the
child process writes straight to the terminal.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

ENV_LEVEL = "MONOINSTALL_LOG_LEVEL"
ENV_FILE = "MONOINSTALL_LOG_FILE"
ENV_FILE_LEVEL = "MONOINSTALL_LOG_FILE_LEVEL"

# (most verbose level the format is used for, format, date format)
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(name)s: %(message)s", "%H:%M:%S"),
)
_PLAIN_FORMAT = "%(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s"


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if env is None else env
    return env.get(ENV_LEVEL, "WARNING")


def _console_handler(level: int) -> logging.Handler:
    formatter = logging.Formatter(_PLAIN_FORMAT)
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            formatter = logging.Formatter(fmt, datefmt=datefmt)
            break

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers.

    Args:
        level: Console level name.
        log_file: Also log to this file when set.
        log_file_level: Level name for the file; the console level if None.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    # Root must pass everything that at least one handler wants
    root.setLevel(min(h.level for h in handlers))

    # A closed stderr (e.g. after the CLI returns) must not raise from logging calls
    logging.raiseExceptions = False


def _parse_level(name: str | None) -> int:
    """Level name to number; unknown or empty names mean WARNING."""
    value = logging.getLevelName(name.upper()) if name else None
    return value if isinstance(value, int) else logging.WARNING
