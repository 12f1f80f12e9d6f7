"""Root logging setup for the API process and its conversion threads."""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone


TEXT_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)s | %(name)s | %(message)s"

CHATTY_LOGGERS = ("urllib3", "httpx", "httpcore", "openai")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, safe for any message content."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging() -> None:
    """Install a single stream handler on the root logger.

    ``LOG_LEVEL`` sets the root level and ``LOG_FORMAT=json`` switches to
    :class:`JsonFormatter`. HTTP client loggers are capped at
    ``LOG_LIBRARY_LEVEL`` (WARNING by default) so pipeline lines stay readable.
    """

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    library_level = os.getenv("LOG_LIBRARY_LEVEL", "WARNING").upper()

    if os.getenv("LOG_FORMAT", "text") == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
