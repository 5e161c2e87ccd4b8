"""Shared exceptions, logging utilities and API dependencies."""

from bgn_eurozone.shared.logging_utils import StructuredLogger, get_structured_logger

__all__ = ["StructuredLogger", "get_structured_logger"]
