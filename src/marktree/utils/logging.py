"""Logging setup for the marktree command-line tools.

Codec and settings warnings attach the ``details()`` of the error that
caused them (reason, node type, tree path) through ``extra``; the
formatter installed here prints those details as ``key=value`` pairs after
the message so a log line names the offending node without a traceback.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:  # pragma: no cover - import for annotations only
    from ..services.settings import Settings

__all__ = ["DetailsFormatter", "configure_logging", "error_details", "get_log_path", "setup_logging"]

_DEFAULT_LOG_DIR = Path.home() / ".marktree" / "logs"
_LOG_FILE_NAME = "marktree.log"
_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_QUIET_LOGGERS: tuple[str, ...] = ("markdown_it",)
_LOG_PATH: Path | None = None


class DetailsFormatter(logging.Formatter):
    """Formatter that appends a record's ``details`` mapping to the message."""

    def __init__(self) -> None:
        super().__init__(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        details = getattr(record, "details", None)
        if not isinstance(details, Mapping):
            return line
        pairs = " ".join(f"{key}={_render_value(value)}" for key, value in details.items() if value is not None)
        return f"{line} [{pairs}]" if pairs else line


def _render_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "/".join(str(item) for item in value) or "-"
    return str(value)


def error_details(error: BaseException) -> dict[str, Any]:
    """Return ``extra`` data carrying ``error.details()`` for a log call.

    Errors without a ``details`` method contribute nothing.
    """

    details = getattr(error, "details", None)
    return {"details": details()} if callable(details) else {}


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Send log records to a rotating ``marktree.log`` and to stderr.

    The console handler writes to stderr because the CLI prints documents
    on stdout. Later calls keep the first configuration unless ``force``.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME
    formatter = DetailsFormatter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    # markdown-it's own debug output drowns the codec's
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))

    _LOG_PATH = log_path
    return log_path


def configure_logging(settings: Settings | None = None, *, debug: bool = False) -> Path | None:
    """Enable debug logging when ``debug`` is set or ``settings.debug_logging`` is on.

    Returns the log file path, or ``None`` when logging was left alone.
    """

    if not debug and not (settings is not None and settings.debug_logging):
        return None
    return setup_logging(logging.DEBUG)


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("MARKTREE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()
