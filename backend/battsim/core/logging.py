"""Structured JSON or plain-text logging for simulation runs."""

from __future__ import annotations

import json
import logging
from typing import Any

from battsim.config import settings

# Extra fields copied into JSON records when a log call supplies them.
_EXTRA_FIELDS = ("hour", "mode", "soc", "cycles", "damage")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        return json.dumps(log_entry)


def setup_logging(json_format: bool | None = None, level: str | int | None = None) -> None:
    """Configure root logger. Use json_format=True for machine-readable logs.

    Arguments left as None fall back to the configured settings.
    """
    if json_format is None:
        json_format = settings.log_json
    if level is None:
        level = settings.log_level.upper()

    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()
    root.addHandler(handler)
