"""
Logging setup for the ``brandops`` logger tree.

Modules log through ``logging.getLogger(__name__)`` and attach
structured context with ``extra={...}``.  :func:`configure_logging`
installs a single stdout handler that renders those records either as
one-line JSON objects or as plain text.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from brandops.config import LoggingSettings, get_settings

ROOT_LOGGER = "brandops"

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render a record and its ``extra`` fields as a JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(settings: Optional[LoggingSettings] = None) -> logging.Logger:
    """Attach a stdout handler to the ``brandops`` logger.

    Calling it again replaces the previous handler, so the level and
    format can be changed at runtime.

    Args:
        settings: Logging section; defaults to ``get_settings().logging``.

    Returns:
        The configured ``brandops`` logger.
    """
    settings = settings or get_settings().logging
    level = getattr(logging, settings.level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if settings.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers = [handler]
    root.setLevel(level)
    root.propagate = False
    return root
