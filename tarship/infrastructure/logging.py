"""
Centralized Logging

Architectural Intent:
- One place that configures the `tarship` logger for CLI and library use
- Human-readable lines by default, structured JSON lines with --json-logs
- Supports configurable log levels via CLI flags (--verbose, --debug)
- Host attribution (set by HostLogAdapter) is carried into the JSON record
"""

import json
import logging
import sys
from datetime import datetime, UTC


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        host = getattr(record, "host", None)
        if host:
            log_entry["host"] = host
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for tarship.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, emit one JSON object per line. Otherwise human-readable.
    """
    root = logging.getLogger("tarship")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S")
        )

    root.addHandler(handler)


def parse_level(name: str, default: int = logging.WARNING) -> int:
    """Maps a level name such as "info" to its number; unknown names give `default`."""
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default
