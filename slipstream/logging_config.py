"""Application logging configuration utilities."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any


class MinimalJSONFormatter(logging.Formatter):
    """Serialize log records to a compact JSON string."""

    _RESERVED_KEYS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message"}

    def format(self, record: logging.LogRecord) -> str:
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z")
        )
        log_record: dict[str, Any] = {
            "ts": timestamp,
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in self._RESERVED_KEYS or key.startswith("_"):
                continue
            log_record[key] = value

        return json.dumps(log_record, ensure_ascii=False, default=str)


def configure_logging(level: str | int = "INFO", *, json_output: bool = False) -> None:
    """Send ``slipstream`` logs to stderr, as plain text or JSON lines."""

    if isinstance(level, str):
        level = level.strip().upper() or "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                    "datefmt": "%H:%M:%S",
                },
                "json": {"()": MinimalJSONFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_output else "plain",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "slipstream": {
                    "level": level,
                    "handlers": ["default"],
                    "propagate": False,
                },
            },
        }
    )
