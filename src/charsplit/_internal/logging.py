"""Structured logging setup for charsplit."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Emits one-line JSON objects with keys: timestamp, level, logger,
    process, message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "process": record.process,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.WARNING,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root charsplit logger.

    Sets up a stderr handler on the ``charsplit`` logger namespace.
    Subsequent calls are idempotent: handlers are not duplicated, only
    their level and formatter are refreshed.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to WARNING
            so a plain run prints nothing but its result line.
        json_format: If True, emit structured JSON logs. If False, emit
            human-readable logs.

    Returns:
        The configured ``charsplit`` root logger.
    """
    logger = logging.getLogger("charsplit")
    logger.setLevel(level)

    formatter: logging.Formatter
    if json_format:
        formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s[%(process)d]: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    # Idempotent: update existing handlers and return early
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``charsplit`` namespace.

    Args:
        name: Logger name, appended to ``charsplit.`` prefix.
            Example: ``get_logger("engine.worker")`` returns
            ``logging.getLogger("charsplit.engine.worker")``.

    Returns:
        A configured child logger.
    """
    return logging.getLogger(f"charsplit.{name}")
