"""Logging configuration for the API server and the migration CLI."""
import logging
import sys

# Third-party loggers that are too chatty at INFO during batch runs
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "uvicorn.access")


def configure_structured_logging(level: str = "INFO") -> None:
    """Route JSON log lines from StructuredLogger (and plain module logs) to stdout."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",  # StructuredLogger emits ready-made JSON
        stream=sys.stdout,
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
