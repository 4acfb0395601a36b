"""Logging setup: one JSON object per line, or plain text for local runs.

Sync code attaches context through ``extra=``; only the keys in
``CONTEXT_KEYS`` are copied into the JSON entry.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_KEYS = ("collection", "resource_id", "page", "records", "duration_s", "run_id")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(threadName)s] %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # worker threads are named by the sync runner's pool
        if record.threadName and record.threadName != "MainThread":
            entry["thread"] = record.threadName
        for key in CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Route the ``freshdesk_sync`` logger tree to stderr.

    Calling it again replaces the previous handler. urllib3's per-request
    debug lines are kept at WARNING regardless of ``level``.
    """
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    logger = logging.getLogger("freshdesk_sync")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
    logging.getLogger("urllib3").setLevel(logging.WARNING)
