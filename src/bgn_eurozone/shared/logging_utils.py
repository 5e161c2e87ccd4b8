"""Structured logging utilities for migration runs."""
import json
import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Optional


def _json_default(value: Any) -> Any:
    """Serialize values json.dumps does not know about (Decimal, datetime, enums)."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class StructuredLogger:
    """Structured logger with correlation ID support.

    A migration run gets one correlation ID so that every batch, warning and
    the final currency switch can be traced back to the run that caused it.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)
        self._correlation_id: Optional[str] = None

    @property
    def correlation_id(self) -> Optional[str]:
        return self._correlation_id

    def set_correlation_id(self, correlation_id: str):
        """Set correlation ID for current context."""
        self._correlation_id = correlation_id

    def clear_correlation_id(self):
        """Clear correlation ID."""
        self._correlation_id = None

    def generate_correlation_id(self, prefix: str = "MIG") -> str:
        """Generate new correlation ID."""
        return f"{prefix}_{uuid.uuid4().hex[:12]}"

    def _format_message(self, level: str, message: str, **kwargs) -> dict:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "message": message,
            "correlation_id": self._correlation_id or "none",
        }

        if kwargs:
            log_entry["context"] = kwargs

        return log_entry

    def _emit(self, level: int, level_name: str, message: str, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        entry = self._format_message(level_name, message, **kwargs)
        self.logger.log(level, json.dumps(entry, default=_json_default))

    def info(self, message: str, **kwargs):
        """Log info with structured data."""
        self._emit(logging.INFO, "INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning with structured data."""
        self._emit(logging.WARNING, "WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error with structured data."""
        self._emit(logging.ERROR, "ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug with structured data."""
        self._emit(logging.DEBUG, "DEBUG", message, **kwargs)


def get_structured_logger(name: str) -> StructuredLogger:
    """Get or create structured logger."""
    return StructuredLogger(name)
