"""Structured logging configuration for the scout pipeline service."""

import logging
import sys
from typing import Any

# Identifiers promoted to top-level log fields when passed via ``extra``
CONTEXT_FIELDS = ("prospect_id", "local_id", "owner_id")


class StructuredFormatter(logging.Formatter):
    """key=value structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured output."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        line = " ".join(f"{k}={v}" for k, v in log_data.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger writing structured lines to stdout, DEBUG in dev and INFO elsewhere
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        try:
            from scoutcrm.core.config import get_settings

            env = get_settings().SCOUT_ENV
            logger.setLevel(logging.DEBUG if env == "dev" else logging.INFO)
        except Exception:
            # Settings unavailable (missing env vars) - default to INFO
            logger.setLevel(logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Identifiers listed in CONTEXT_FIELDS become first-class fields; everything
    else is appended as extra key=value pairs.
    """
    extra: dict[str, Any] = {}
    for field in CONTEXT_FIELDS:
        if field in kwargs:
            extra[field] = kwargs.pop(field)
    extra["extra_data"] = kwargs

    logger.log(level, msg, extra=extra)
