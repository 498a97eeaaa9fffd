"""Structured logging configuration for the Study Buddy service."""

import logging
import sys
from typing import Any

PREVIEW_CHARS = 500


class StructuredFormatter(logging.Formatter):
    """Key=value structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured output."""
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        # Correlates every line logged while serving one generation request
        if hasattr(record, "request_id"):
            log_data["request_id"] = record.request_id

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
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        try:
            from studybuddy.core.config import get_settings

            env = get_settings().STUDY_BUDDY_ENV
            logger.setLevel(logging.DEBUG if env == "dev" else logging.INFO)
        except Exception:
            # Settings may be unavailable (e.g. missing env vars at import time)
            logger.setLevel(logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (e.g., request_id, subject_id)
    """
    extra: dict[str, Any] = {}
    if "request_id" in kwargs:
        extra["request_id"] = kwargs.pop("request_id")
    extra["extra_data"] = kwargs

    logger.log(level, msg, extra=extra)


def preview(text: str | None, limit: int = PREVIEW_CHARS) -> str:
    """Return a single-line, length-bounded preview of model or corpus text."""
    if not text:
        return ""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return f"{flat[:limit]}..."
