"""Logging setup for Chronicle.

Everything goes to one rotating file (``~/.chronicle/logs/chronicle.log`` unless
``CHRONICLE_LOG_DIR`` points elsewhere) and, optionally, to stderr. The headless
command and ``--dump-settings`` report the file's location to the user.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["LOG_FILE_NAME", "setup_logging", "resolve_log_path", "active_log_path"]

LOG_FILE_NAME = "chronicle.log"
_DEFAULT_LOG_DIR = Path.home() / ".chronicle" / "logs"
_LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
_MAX_BYTES = 512_000
_BACKUP_COUNT = 2
# Third-party loggers that flood DEBUG output with connection chatter.
_CHATTY_LOGGERS = ("asyncio", "qasync", "httpx", "httpcore", "openai")

_active_path: Path | None = None


def resolve_log_path(log_dir: Path | str | None = None) -> Path:
    """Return where the log file lives, without configuring anything."""

    directory = log_dir or os.environ.get("CHRONICLE_LOG_DIR") or _DEFAULT_LOG_DIR
    return Path(directory).expanduser() / LOG_FILE_NAME


def active_log_path() -> Path | None:
    """Return the log file installed by :func:`setup_logging`, if any."""

    return _active_path


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Install the file (and console) handlers on the root logger.

    Later calls are no-ops unless ``force`` is set, which is how a debug
    setting read from disk raises the level after startup.
    """

    global _active_path
    if _active_path is not None and not force:
        return _active_path

    log_path = resolve_log_path(log_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(_LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    quiet_level = max(level, logging.WARNING)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _active_path = log_path
    return log_path
