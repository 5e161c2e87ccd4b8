"""Service configuration."""

from bgn_eurozone.config.models import EurozoneConfig
from bgn_eurozone.config.settings import load_config, load_config_with_fallback

__all__ = ["EurozoneConfig", "load_config", "load_config_with_fallback"]
