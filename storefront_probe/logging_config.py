"""Logging for monitor runs.

Text output is meant for a person watching ``storefront-monitor`` in a
terminal. ``LOG_FORMAT=json`` emits one object per line for a collector,
with the journey fields that step and run logs attach through ``extra``
(``store``, ``step``, ``elapsed_ms``, ``run_id``, ``severity``) promoted
to top-level keys so runs can be filtered without parsing messages.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

JOURNEY_FIELDS = ("store", "step", "elapsed_ms", "run_id", "severity")

# browser and HTTP clients log every request at DEBUG
QUIET_LOGGERS = ("playwright", "httpx", "httpcore", "openai", "asyncio")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in JOURNEY_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level_override: Optional[str] = None) -> None:
    """Install a single stderr handler on the root logger.

    ``level_override`` comes from ``--log-level`` and beats ``LOG_LEVEL``.
    Unknown level names run at INFO rather than aborting the monitor.
    """
    level_name = (level_override or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    if os.getenv("LOG_FORMAT", "text").lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
