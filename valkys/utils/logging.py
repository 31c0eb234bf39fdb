"""valkys logging utilities.

Structured JSON logs go to a rotating file because the terminal belongs to the
dashboard while it runs. A colourful Rich handler can be attached to stderr
with ``--console`` for troubleshooting sessions where the output is redirected
or the dashboard is run under a separate terminal.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# -v 0..4 on the command line.
VERBOSITY_LEVELS = ("ERROR", "WARNING", "INFO", "DEBUG", "TRACE")

_CONTEXT_FIELDS = ("view", "poller", "task", "command", "key", "elapsed", "generation", "path")


class JsonFormatter(logging.Formatter):
    """Format log records as JSON documents.

    Besides timestamp, severity and logger name the formatter copies the
    structured fields modules pass through ``extra=`` (view names, poller
    names, task names) so log files can be filtered per component.
    """

    default_time_format = "%Y-%m-%dT%H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                self.default_time_format
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        for key in _CONTEXT_FIELDS:
            if key in record.__dict__:
                payload[key] = record.__dict__[key]
        return json.dumps(payload, ensure_ascii=False, default=str)


def level_for_verbosity(verbosity: int) -> str:
    """Map the ``-v`` count to a logging level name, clamping out-of-range values."""

    index = max(0, min(len(VERBOSITY_LEVELS) - 1, verbosity))
    return VERBOSITY_LEVELS[index]


def default_log_dir() -> Path:
    return Path(os.environ.get("VALKYS_LOG_DIR", Path.home() / ".valkys" / "logs"))


def _build_handlers(log_dir: Path, console: bool) -> Dict[str, Dict[str, Any]]:
    handlers: Dict[str, Dict[str, Any]] = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filename": str(log_dir / "valkys.log"),
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }
    }
    if console:
        handlers["console"] = {
            "class": "rich.logging.RichHandler",
            "formatter": "rich",
            "rich_tracebacks": True,
            "show_path": False,
        }
    return handlers


def configure_logging(
    *, level: str = "INFO", log_dir: Optional[Path] = None, console: bool = False
) -> Path:
    """Configure global logging for valkys.

    Parameters
    ----------
    level:
        Minimum severity that should be emitted. Accepts standard logging level
        names plus ``TRACE``.
    log_dir:
        Directory where the rotating log file lives. Defaults to
        ``$VALKYS_LOG_DIR`` or ``~/.valkys/logs``.
    console:
        Also emit records on stderr through :class:`rich.logging.RichHandler`.

    Returns the path of the active log file. Safe to call repeatedly; each call
    replaces the previous handlers.
    """

    log_dir = log_dir or default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    handlers = _build_handlers(log_dir, console)

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "valkys.utils.logging.JsonFormatter",
            },
            "rich": {
                "format": "%(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": handlers,
        "root": {
            "level": level.upper(),
            "handlers": list(handlers.keys()),
        },
    }

    logging.config.dictConfig(config)
    return log_dir / "valkys.log"


def get_logger(name: str) -> logging.Logger:
    """Return a logger bound to the shared configuration."""

    return logging.getLogger(name)


__all__ = [
    "JsonFormatter",
    "TRACE",
    "VERBOSITY_LEVELS",
    "configure_logging",
    "default_log_dir",
    "get_logger",
    "level_for_verbosity",
]
