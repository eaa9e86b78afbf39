"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  DEK_LOG_LEVEL env var  >  WARNING

Optional file output via DEK_LOG_FILE / DEK_LOG_FILE_LEVEL env vars.

Console records go to stderr through ``click.echo(err=True)``, which
strips level colours when stderr is not a terminal. Stdout belongs to
the run reporter and to ``dek state`` output. Records logged from probe
worker threads carry the thread name.
"""

from __future__ import annotations

import logging
import threading

import click

# ── Format strings ──────────────────────────────────────────────

# WARNING and above: the message, prefixed by a coloured level tag
_FMT_MINIMAL = "%(message)s"

# INFO: timestamp, logger and worker thread
_FMT_VERBOSE = "%(asctime)s [%(name)s]%(worker)s %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG: adds level and line number
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d%(worker)s %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d%(worker)s %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_LEVEL_COLOURS = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}

# Library loggers that are chatty below WARNING
_NOISY_LOGGERS = ("urllib3",)


class WorkerFilter(logging.Filter):
    """Sets ``record.worker`` to `` (thread)`` off the main thread, else ``""``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.threadName == threading.main_thread().name:
            record.worker = ""
        else:
            record.worker = f" ({record.threadName})"
        return True


class ClickEchoHandler(logging.Handler):
    """Writes records to stderr through click, colouring warnings and errors.

    At the minimal tier a record is tagged ``warning:`` / ``error:`` so it
    stands apart from the reporter's item lines on a shared terminal.
    """

    def __init__(self, level: int = logging.NOTSET, tag_levels: bool = False):
        super().__init__(level)
        self.tag_levels = tag_levels

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            colour = _LEVEL_COLOURS.get(record.levelno)
            if self.tag_levels and colour:
                tag = click.style(f"{record.levelname.lower()}:", fg=colour, bold=True)
                message = f"{tag} {message}"
            click.echo(message, err=True)
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Separate level for the file; defaults to ``level``.
        quiet_third_party: Keep library loggers at WARNING unless at DEBUG.
    """
    numeric_level = parse_level(level)
    workers = WorkerFilter()

    # ── Console handler (stderr via click) ──────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = ClickEchoHandler(numeric_level, tag_levels=numeric_level > logging.INFO)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    console.addFilter(workers)

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Root level is the lower of the console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        fh.addFilter(workers)
        root.addHandler(fh)

    root.setLevel(effective_level)

    # ── Third-party noise control ───────────────────────────────
    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def parse_level(level: str | None) -> int:
    """Convert a level name to its numeric constant (WARNING if unknown)."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
