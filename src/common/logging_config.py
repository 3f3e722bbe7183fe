"""
Logging configuration for the VM provisioner.

Console output goes to stderr; a rotating log file can be added in plain
or JSON format. Records emitted inside a LogContext carry the VM name and
the step being dispatched, and every formatter here prints them.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import json
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(levelname)s %(name)s%(context)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s%(context)s [%(filename)s:%(lineno)d] %(message)s"

# Short labels for the context keys the provisioner attaches
CONTEXT_LABELS = {"vm_name": "vm"}


def format_context(data: Optional[dict]) -> str:
    """Render run context as `` [vm=web step=register]``, or "" when empty."""
    if not data:
        return ""
    pairs = " ".join(f"{CONTEXT_LABELS.get(key, key)}={value}" for key, value in data.items())
    return f" [{pairs}]"


class ContextFormatter(logging.Formatter):
    """Plain formatter that fills ``%(context)s`` from the record's run context."""

    def format(self, record: logging.LogRecord) -> str:
        record.context = format_context(getattr(record, "extra_data", None))
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        return json.dumps(log_data)


class ColoredFormatter(ContextFormatter):
    """Context formatter with the level name coloured for terminals."""

    COLORS = {
        logging.DEBUG: "\033[36m",    # Cyan
        logging.INFO: "\033[32m",     # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",    # Red
        logging.CRITICAL: "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        levelname = record.levelname

        record.levelname = f"{color}{levelname}{self.RESET}"
        result = super().format(record)

        # Restore original levelname for other handlers
        record.levelname = levelname

        return result


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    json_logs: bool = False,
):
    """
    Configure logging for the provisioner.

    Console output goes to stderr so that stdout only carries the
    success confirmation and dry-run output.

    Args:
        level: Console logging level (default: WARNING)
        log_file: Path to a rotating log file that captures DEBUG (optional)
        json_logs: Use JSON format for file logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_file else level)

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    formatter_class = ColoredFormatter if sys.stderr.isatty() else ContextFormatter
    console_handler.setFormatter(formatter_class(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter() if json_logs else ContextFormatter(FILE_FORMAT))

        root_logger.addHandler(file_handler)


class LogContext:
    """
    Attach run context to every record created inside the block.

    Contexts nest: an inner block adds to, and may override, the keys of
    the enclosing one.

    Example:
        with LogContext(vm_name="my-vm"):
            with LogContext(step="register"):
                logger.info("Registering VM")  # [vm=my-vm step=register]
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._old_factory = None

    def __enter__(self):
        self._old_factory = logging.getLogRecordFactory()

        old_factory = self._old_factory
        context = self.context

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            record.extra_data = {**getattr(record, "extra_data", {}), **context}
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, *args):
        logging.setLogRecordFactory(self._old_factory)
