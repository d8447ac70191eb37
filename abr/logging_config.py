"""Logging setup for the ABR engine.

Decision logs are single key=value lines. Records may carry the session id,
the level index being switched to and the bandwidth behind the decision.
"""

import logging
import sys
from typing import Any, Optional

from abr.config import get_config

# Optional record attributes, passed through logger calls via extra=
CONTEXT_FIELDS = ("session_id", "level_index", "bandwidth_bps")


class StructuredFormatter(logging.Formatter):
    """Key=value formatter that appends ABR decision context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        return " ".join(f"{k}={v}" for k, v in log_data.items())


def setup_logging(level: Optional[str] = None) -> None:
    """Send ABR engine logs to stdout.

    Args:
        level: Level name overriding ABR_LOG_LEVEL (e.g. "DEBUG")
    """
    level_name = (level or get_config().log_level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level_name))
    console_handler.setFormatter(StructuredFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    root_logger.addHandler(console_handler)

    logging.getLogger("abr").setLevel(getattr(logging, level_name))


def get_logger(name: str) -> logging.Logger:
    """Get a logger for an engine module (typically __name__)."""
    return logging.getLogger(name)
