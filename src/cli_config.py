"""Runtime configuration for the install pipeline.

Values are resolved with the precedence CLI > environment > config file >
defaults from :class:`constants.Constants`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from constants import Constants

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration file is unreadable or has invalid values."""


def default_cache_directory() -> Path:
    """``$XDG_CACHE_HOME/composer-py``, falling back to ``~/.cache/composer-py``."""
    base = os.environ.get("XDG_CACHE_HOME")
    if base:
        return Path(base) / Constants.CACHE_APP_NAME
    return Path.home() / ".cache" / Constants.CACHE_APP_NAME


def load_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML or JSON configuration file.

    The ``install`` section is used when present, otherwise the whole document.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    if not config_path:
        return {}
    if not os.path.isfile(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.lower().endswith(".json"):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a mapping")
    section = data.get("install", data)
    return section if isinstance(section, dict) else {}


def _positive_int(value: Any, source: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source} must be an integer, got {value!r}") from e
    if number < 1:
        raise ConfigError(f"{source} must be at least 1, got {number}")
    return number


@dataclass
class InstallConfig:
    """Configuration for an install / clear-cache run."""

    working_directory: Path
    cache_directory: Path
    max_concurrency: int = Constants.MAX_CONCURRENCY
    fail_fast: bool = Constants.FAIL_FAST
    include_dev: bool = False

    @property
    def lock_file(self) -> Path:
        return self.working_directory / Constants.LOCK_FILE

    @property
    def vendor_directory(self) -> Path:
        return self.working_directory / Constants.VENDOR_DIR

    @classmethod
    def from_args(cls, args: Any) -> "InstallConfig":
        """Create config from CLI arguments, environment and config file.

        Args:
            args: Parsed CLI arguments namespace.

        Returns:
            InstallConfig instance.
        """
        file_values = load_config_file(getattr(args, "CONFIG", None))

        working_directory = (
            getattr(args, "WORKING_DIRECTORY", None)
            or file_values.get("working-directory")
            or os.getcwd()
        )
        cache_directory = (
            getattr(args, "CACHE_DIRECTORY", None)
            or os.environ.get(Constants.ENV_CACHE_DIR)
            or file_values.get("cache-directory")
            or default_cache_directory()
        )

        config = cls(
            working_directory=Path(working_directory),
            cache_directory=Path(cache_directory).expanduser(),
        )

        if "max-concurrency" in file_values:
            config.max_concurrency = _positive_int(file_values["max-concurrency"], "max-concurrency")
        env_concurrency = os.environ.get(Constants.ENV_MAX_CONCURRENCY)
        if env_concurrency:
            config.max_concurrency = _positive_int(env_concurrency, Constants.ENV_MAX_CONCURRENCY)
        if getattr(args, "MAX_CONCURRENCY", None) is not None:
            config.max_concurrency = _positive_int(args.MAX_CONCURRENCY, "--concurrency")

        config.fail_fast = bool(getattr(args, "FAIL_FAST", False) or file_values.get("fail-fast", False))
        config.include_dev = bool(getattr(args, "DEV", False) or file_values.get("dev", False))

        logger.debug(
            "Resolved config: working_directory=%s cache_directory=%s max_concurrency=%d",
            config.working_directory,
            config.cache_directory,
            config.max_concurrency,
        )
        return config
