"""
Configuration loader — reads the optional settings file into ``Settings``.

Without a settings file the provisioner runs the built-in recipe.
A file only overrides what it names; everything is validated
against the Pydantic schema before use.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from wpbootstrap.core.models.settings import Settings

logger = logging.getLogger(__name__)

# Env var naming an explicit settings file
CONFIG_ENV_VAR = "WPB_CONFIG"

# Looked up when no explicit path is given
DEFAULT_CONFIG_FILE = Path("/etc/wpbootstrap.yml")

# Optional wrapper key at the top of the YAML document
CONFIG_ROOT_KEY = "wpbootstrap"


class ConfigError(Exception):
    """Raised when the settings file is invalid or missing."""


def find_settings_file() -> Path | None:
    """Locate the settings file: ``$WPB_CONFIG``, then the system default.

    Returns:
        Path to the settings file, or None to use built-in defaults.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    if DEFAULT_CONFIG_FILE.is_file():
        return DEFAULT_CONFIG_FILE
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate provisioning settings.

    Args:
        path: Explicit settings file. If None, searches with
            ``find_settings_file()`` and falls back to defaults.

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = find_settings_file()

    if path is None:
        logger.debug("No settings file, using built-in defaults")
        return Settings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    if CONFIG_ROOT_KEY in data:
        data = data[CONFIG_ROOT_KEY] or {}

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
