"""
Configuration loader — reads provision.yml into a ProvisionConfig.

The file is optional: with no file anywhere up the directory tree the
built-in defaults are used. When a file is found it is read as YAML and
validated against the Pydantic schema.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Default config filename
PROVISION_CONFIG_FILE = "provision.yml"


class ConfigError(Exception):
    """Raised when provisioning configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROVISION_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, *, search: bool = True) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit path to provision.yml. Must exist when given.
        search: When no path is given, search upward from cwd.

    Returns:
        Validated ProvisionConfig (defaults if no file was found).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file() if search else None
        if path is None:
            logger.debug("No %s found, using built-in defaults", PROVISION_CONFIG_FILE)
            return ProvisionConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading provisioning config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "provision" key or be flat
    if "provision" in data and isinstance(data["provision"], dict):
        data = data["provision"]

    try:
        config = ProvisionConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid provisioning configuration: {e}") from e

    logger.info(
        "Loaded config from %s (stellar %s, %d checks)",
        path,
        config.release.version,
        len(config.checks),
    )
    return config
