"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

What a run logs, by level:
    WARNING  failed resources (``✗ id → failed [kind] reason``), Command
             resources with no ``creates``/``unless`` guard, best-effort
             commands that exited non-zero, ``creates`` paths a command
             did not produce
    INFO     one outcome line per resource (``=`` unchanged, ``✓``
             applied, ``⊘`` skipped), every host mutation an adapter
             makes (apt-get install, npm install -g, systemctl
             start/enable, pm2 start/save, docker compose up), backups
             of replaced files, the run header and counts
    DEBUG    every subprocess argv with its cwd, exit code and duration;
             planner order; adapter registration

Levels are resolved in precedence order:
    CLI flag  >  HOSTCONVERGE_LOG_LEVEL env var  >  WARNING (default)

Optional file output via HOSTCONVERGE_LOG_FILE / HOSTCONVERGE_LOG_FILE_LEVEL.
The log file is the durable record of what a run changed on the host, so
it records at INFO or finer even when the console is quieter, and every
line carries the host name.
"""

from __future__ import annotations

import logging
import socket
import sys

# ── Format strings ──────────────────────────────────────────────

# WARNING level — just the outcome marker and message
_FMT_MINIMAL = "%(message)s"

# INFO level — timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level — full diagnostic with file:line and thread (--jobs > 1)
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output — full detail, tagged with the host being converged
_FMT_FILE = "%(asctime)s %(host)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at INFO/DEBUG
_NOISY_LOGGERS = ("urllib3", "asyncio")


class _HostFilter(logging.Filter):
    """Stamp ``record.host`` so logs gathered from several machines stay apart."""

    def __init__(self, host: str | None = None) -> None:
        super().__init__()
        self.host = host or socket.gethostname()

    def filter(self, record: logging.LogRecord) -> bool:
        record.host = self.host
        return True


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file, appended to across runs.
        log_file_level: Optional separate level for the log file.
            Defaults to INFO, or ``level`` when that is finer.
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
    """
    numeric_level = parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        if log_file_level:
            file_level = parse_level(log_file_level)
        else:
            # the per-resource outcome lines are INFO
            file_level = min(numeric_level, logging.INFO)
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setLevel(file_level)
        fh.addFilter(_HostFilter())
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # ── Third-party noise control ───────────────────────────────
    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
