"""Structured logging configuration for Dossier AI."""

import logging
import re
import sys
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Key=value structured log formatter."""

    correlation_fields = ("run_id", "job_id", "presentation_id", "draft_id")

    # Upstream error text can echo Anthropic keys or Supabase JWTs
    secret_patterns = (
        re.compile(r"sk-ant-[A-Za-z0-9_-]+"),
        re.compile(r"(?<=Bearer )[A-Za-z0-9._-]+"),
        re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
    )

    def redact(self, text: str) -> str:
        for pattern in self.secret_patterns:
            text = pattern.sub("[REDACTED]", text)
        return text

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for field in self.correlation_fields:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        parts = [f"{k}={v}" for k, v in log_data.items()]
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return self.redact(line)


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

        try:
            from dossier.core.config import get_settings

            settings = get_settings()
            if settings.DOSSIER_ENV == "dev":
                logger.setLevel(logging.DEBUG)
            else:
                logger.setLevel(logging.INFO)
        except Exception:
            logger.setLevel(logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Context fields; correlation ids (run_id, job_id,
            presentation_id, draft_id) become record attributes
    """
    extra: dict[str, Any] = {
        field: kwargs.pop(field)
        for field in StructuredFormatter.correlation_fields
        if field in kwargs
    }
    extra["extra_data"] = kwargs

    logger.log(level, msg, extra=extra)
