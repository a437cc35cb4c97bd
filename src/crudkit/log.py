"""Logging setup for crudkit.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves.  Applications (and the CLI) call
``configure_logging`` once: rich console output by default, one JSON
object per line with ``json_logs=True``.

Usage:
    from crudkit.log import configure_logging

    configure_logging("DEBUG")
    configure_logging("INFO", json_logs=True)
"""

import json
import logging
import logging.config
from typing import Any

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render records as single-line JSON, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure root logging, replacing any handlers configured earlier.

    Args:
        level: Logging level name (``"DEBUG"``, ``"INFO"``, ...).
        json_logs: Emit JSON lines to stderr instead of rich console output.
    """
    level = level.upper()
    if json_logs:
        handler: dict[str, Any] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": level,
        }
    else:
        handler = {
            "class": "rich.logging.RichHandler",
            "formatter": "console",
            "level": level,
            "show_path": False,
            "rich_tracebacks": True,
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {"format": "%(name)s: %(message)s", "datefmt": "[%X]"},
                "json": {"()": JsonFormatter},
            },
            "handlers": {"default": handler},
            "root": {"handlers": ["default"], "level": level},
        }
    )
