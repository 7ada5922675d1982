"""Logging setup for stackweave.

Call ``configure_logging`` once from an entry point; library modules only
ever do ``logger = logging.getLogger(__name__)``.

Environment Variables:
    STACKWEAVE_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    STACKWEAVE_LOG_FORMAT: Output format ("text" or "json")
    STACKWEAVE_LOG_FILE: Optional log file path
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Literal

TEXT_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# LogRecord attributes that are not user-supplied extras
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "taskName"}
)

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    {"timestamp": "...", "level": "INFO", "logger": "stackweave.core.vcs.git",
     "message": "...", "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            data["extra"] = extra

        return json.dumps(data, default=str)


def configure_logging(
    level: str | None = None,
    format: Literal["text", "json"] | None = None,
    file_path: str | None = None,
    force: bool = False,
) -> None:
    """Configure root logging.

    Subsequent calls are ignored unless ``force`` is set.

    Args:
        level: Log level. Defaults to STACKWEAVE_LOG_LEVEL or "WARNING".
        format: "text" or "json". Defaults to STACKWEAVE_LOG_FORMAT or "text".
        file_path: Optional log file. Defaults to STACKWEAVE_LOG_FILE.
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return

    level = level or os.environ.get("STACKWEAVE_LOG_LEVEL", "WARNING")
    format = format or os.environ.get("STACKWEAVE_LOG_FORMAT", "text")  # type: ignore[assignment]
    file_path = file_path or os.environ.get("STACKWEAVE_LOG_FILE")

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root.handlers.clear()

    if format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Thin wrapper over logging.getLogger for consistent naming."""
    return logging.getLogger(name)
