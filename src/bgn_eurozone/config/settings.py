"""
Configuration loading for the eurozone pricing service.

Priority order:
1. Explicit config file path
2. EUROZONE_CONFIG_FILE
3. Default locations (eurozone.json, config/eurozone.json)
4. Built-in defaults

Individual EUROZONE_* variables are applied on top of whichever of these won.
"""

import logging
import os
from pathlib import Path

from .models import EurozoneConfig

logger = logging.getLogger(__name__)

CONFIG_NAME = "eurozone.json"

# Environment variable -> (section, field); section None means top level
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "EUROZONE_DB_PATH": ("database", "path"),
    "EUROZONE_BATCH_SIZE": ("migration", "batch_size"),
    "EUROZONE_API_KEY": (None, "api_key"),
    "EUROZONE_LOG_LEVEL": (None, "log_level"),
}


def load_config(
    config_path: str | Path | None = None, config_name: str = CONFIG_NAME
) -> EurozoneConfig:
    """
    Load configuration from file with path resolution.

    Args:
        config_path: Explicit path to config file or directory containing config
        config_name: Name of config file

    Raises:
        FileNotFoundError: If no configuration file is found
        ValueError: If configuration is invalid
    """
    if config_path is None:
        search_paths = [
            Path.cwd() / config_name,
            Path.cwd() / "config" / config_name,
        ]

        for path in search_paths:
            if path.exists():
                config_path = path
                break
        else:
            raise FileNotFoundError(
                f"Configuration file '{config_name}' not found in any of: "
                f"{[str(p) for p in search_paths]}"
            )

    config_path = Path(config_path)
    if config_path.is_dir():
        config_path = config_path / config_name

    return EurozoneConfig.from_file(config_path)


def apply_env_overrides(config: EurozoneConfig) -> EurozoneConfig:
    """
    Return a copy of ``config`` with EUROZONE_* variables applied.

    Raises:
        ValueError: If a variable holds a value the model rejects
    """
    data = config.model_dump()
    applied = []
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        target = data[section] if section else data
        target[field] = value
        applied.append(env_name)

    if not applied:
        return config

    logger.debug(f"Applied environment overrides: {', '.join(applied)}")
    try:
        return EurozoneConfig(**data)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid environment variable configuration: {e}")


def load_config_with_fallback(config_path: str | Path | None = None) -> EurozoneConfig:
    """Load configuration following the module's priority order."""
    candidates = [config_path, os.getenv("EUROZONE_CONFIG_FILE")]
    for candidate in candidates:
        if not candidate:
            continue
        try:
            return apply_env_overrides(load_config(candidate))
        except FileNotFoundError:
            logger.warning(f"Configuration file not found: {candidate}")

    try:
        config = load_config()
    except FileNotFoundError:
        logger.info("No configuration file found, using defaults")
        config = EurozoneConfig()

    return apply_env_overrides(config)
