"""Centralized logging configuration."""

import json
import logging
import sys
from datetime import datetime, timezone

from gemini_proxy.core.config import Settings, settings as default_settings


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_data["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "actor_id"):
            log_data["actor_id"] = record.actor_id
        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging for the entire process."""
    settings = settings or default_settings
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    # stdout carries the outbound envelope in the CLI host
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if settings.log_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root.addHandler(handler)

    # Suppress noisy libraries; httpx logs full URLs, which carry the API key
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
