"""Logging setup: plain or JSON output, optional rotating file, run context fields."""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "aiohttp": logging.WARNING,
    "asyncio": logging.WARNING,
}


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON object, context fields included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "extra_fields", {}))

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(payload, default=str)


class RunContextFilter(logging.Filter):
    """Merges process-wide context (service name and the like) into every record."""

    def __init__(self):
        super().__init__()
        self.fields: Dict[str, Any] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        record.extra_fields = {**self.fields, **getattr(record, "extra_fields", {})}
        return True


_context_filter = RunContextFilter()


def _attach(handler: logging.Handler, formatter: logging.Formatter, root: logging.Logger) -> None:
    handler.setFormatter(formatter)
    handler.addFilter(_context_filter)
    root.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the root logger, replacing any handlers already installed.

    Args:
        level: Root logging level name
        log_file: Also write to this file, rotated at ``max_size`` bytes
        log_format: ``logging.Formatter`` format for plain output
        structured: Emit JSON lines instead of plain text
        max_size: Rotation size of the log file in bytes
        backup_count: Rotated files to keep

    Returns:
        The root logger
    """
    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(fmt=log_format or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    _attach(logging.StreamHandler(sys.stdout), formatter, root)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _attach(RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count), formatter, root)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_logging_context(**fields):
    """Attach ``fields`` to every record emitted from now on."""
    _context_filter.fields.update(fields)


def clear_logging_context():
    _context_filter.fields.clear()


def log_with_context(logger: logging.Logger, level: int, message: str, **fields):
    """Log ``message`` with per-call fields such as ``run_id`` and ``node_id``."""
    logger.log(level, message, extra={"extra_fields": fields})
