"""
Logging configuration for dim-cli.

Console output is split by level: INFO/DEBUG go to stdout and
WARNING/ERROR/CRITICAL go to stderr, each switchable from settings.
An optional rotating file handler writes to the XDG state directory.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from dimcli.config import Settings

STANDARD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Marks handlers installed here so repeated setup replaces them
_HANDLER_ATTR = "_dimcli_handler"


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


class _ContextFilter(logging.Filter):
    def __init__(self, context: str):
        super().__init__()
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = self.context
        return True


def _make_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter()
    return logging.Formatter(STANDARD_FORMAT)


def _install(root: logging.Logger, handler: logging.Handler, context: str) -> None:
    setattr(handler, _HANDLER_ATTR, True)
    handler.addFilter(_ContextFilter(context))
    root.addHandler(handler)


def setup_logging(context: str = "cli", settings: Optional[Settings] = None) -> None:
    """
    Configure the root logger for the given context.

    Handlers installed by a previous call are removed first, so calling this
    more than once in a process is safe.

    Args:
        context: Short name of the running component, used for the log file name
        settings: Settings to read from (the global settings by default)

    Raises:
        PermissionError: If file logging is enabled and the log directory
            cannot be created or written
    """
    if settings is None:
        from dimcli.config import settings as default_settings

        settings = default_settings

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            root.removeHandler(handler)
            handler.close()

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    root.setLevel(level)

    formatter = _make_formatter(settings.log_format)

    if settings.log_console_enabled:
        if settings.log_to_stdout:
            stdout_handler = logging.StreamHandler(sys.stdout)
            stdout_handler.setLevel(logging.DEBUG)
            stdout_handler.addFilter(_MaxLevelFilter(logging.INFO))
            stdout_handler.setFormatter(formatter)
            _install(root, stdout_handler, context)

        if settings.log_to_stderr:
            stderr_handler = logging.StreamHandler(sys.stderr)
            # Without a stdout handler everything goes to stderr
            stderr_handler.setLevel(
                logging.WARNING if settings.log_to_stdout else logging.DEBUG
            )
            stderr_handler.setFormatter(formatter)
            _install(root, stderr_handler, context)

    if settings.log_file_enabled:
        log_dir = settings.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        _install(root, file_handler, context)


def enable_verbose_logging() -> None:
    """Lower the root logger to DEBUG for a --verbose invocation."""
    # Handler levels already admit DEBUG where they should
    logging.getLogger().setLevel(logging.DEBUG)
