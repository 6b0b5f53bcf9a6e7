from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig

from registry.common.config import get_settings

# AWS SDK loggers emit per-request chatter at DEBUG/INFO
SDK_LOGGERS: tuple[str, ...] = ("boto3", "botocore", "s3transfer", "urllib3")


def setup_logging(level: str | None = None) -> None:
    """Configure JSON logs for the storage layer.

    Storage events go through ``registry.storage`` at ``level`` (defaulting to
    ``LOG_LEVEL``); backend construction is reported on ``registry.startup``
    in plain text; the AWS SDK is held at WARNING whatever the level.
    """
    level = (level or get_settings().LOG_LEVEL).upper()
    loggers: dict[str, dict] = {
        "registry.startup": {
            "handlers": ["startup_console"],
            "level": "INFO",
            "propagate": False,
        },
        "registry.storage": {
            "level": level,
        },
    }
    for name in SDK_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": JsonFormatter,
                },
                "plain": {
                    "format": "%(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "startup_console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "root": {
                "level": level,
                "handlers": ["console"],
            },
            "loggers": loggers,
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # storage events pass structured fields as extra={"extra": {...}}
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)
