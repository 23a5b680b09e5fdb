"""
Configuration System

YAML-backed configuration for itemcache. Features:
- Single-file YAML loading with environment resolution
- ``.env`` loading from the working directory
- Pre-computed sections for the cache, the remote source and logging
- Dot-notation access with explicit defaults

Usage:
    from itemcache.utils.config import get_config_value, get_cache_config

    threshold = get_config_value("cache.staleness_threshold_seconds", 300)
    cache_config = get_cache_config()
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Use standard logging (not get_logger) to avoid circular imports with logger.py
logger = logging.getLogger("CONFIG")

DEFAULT_STALENESS_THRESHOLD_SECONDS = 300
DEFAULT_MUTATION_POLICY = "queue"
DEFAULT_REMOTE_TIMEOUT_SECONDS = 10.0
DEFAULT_REMOTE_COLLECTION = "items"


class ConfigBuilder:
    """
    Configuration builder for a single ``config.yml``.

    Features:
    - YAML loading with validation and error handling
    - Environment variable resolution (``${VAR}``, ``${VAR:-default}``, ``$VAR``)
    - Pre-computed ``configurable`` dictionary for runtime access
    - Fail-fast behavior when no configuration file can be found
    """

    # Sentinel object to distinguish between "no default provided" and "default is None"
    _REQUIRED = object()

    def __init__(self, config_path: str | None = None):
        """
        Initialize configuration builder.

        Args:
            config_path: Path to the config.yml file. If None, looks in current directory.

        Raises:
            FileNotFoundError: If config.yml is not found and no path is provided.
        """
        dotenv_path = Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)  # Don't override existing env vars
            logger.debug(f"Loaded .env file from {dotenv_path}")

        if config_path is None:
            cwd_config = Path.cwd() / "config.yml"
            if cwd_config.exists():
                config_path = cwd_config
            else:
                raise FileNotFoundError(
                    f"No config.yml found in current directory: {Path.cwd()}\n\n"
                    f"Please run from a directory containing config.yml,\n"
                    f"or set CONFIG_FILE environment variable to point to your config file.\n\n"
                    f"Example: export CONFIG_FILE=/path/to/your/config.yml"
                )

        self.config_path = Path(config_path)
        self.raw_config, self._unexpanded_config = self._load_config()

        # Pre-compute nested structures for efficient runtime access
        self.configurable = self._build_configurable()

    def _require_config(self, path: str, default: Any = _REQUIRED) -> Any:
        """
        Get a configuration value, failing fast when a required one is missing.

        Args:
            path: Dot-separated configuration path (e.g., "cache.mutation_policy")
            default: Default value to use if config is missing. If not provided,
                    the configuration is considered required and will raise ValueError.

        Returns:
            The configuration value, or default if provided and config is missing

        Raises:
            ValueError: If required configuration (no default) is missing or None
        """
        value = self.get(path)

        if value is None:
            if default is self._REQUIRED:
                raise ValueError(
                    f"Missing required configuration: '{path}' must be explicitly set in config.yml."
                )
            logger.debug(f"Using default value for '{path}' = {default}")
            return default
        return value

    def _load_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Load and validate a YAML configuration file."""
        try:
            with open(file_path) as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.warning(f"Configuration file is empty: {file_path}")
                return {}

            if not isinstance(config, dict):
                error_msg = f"Configuration file must contain a dictionary/mapping: {file_path}"
                logger.error(error_msg)
                raise ValueError(error_msg)

            logger.debug(f"Loaded configuration from {file_path}")
            return config
        except yaml.YAMLError as e:
            error_msg = f"Error parsing YAML configuration: {e}"
            logger.error(error_msg)
            raise yaml.YAMLError(error_msg) from e

    def _resolve_env_vars(self, data: Any) -> Any:
        """Recursively resolve environment variables in configuration data.

        Supports both simple and bash-style default value syntax:
        - ${VAR_NAME} - simple substitution
        - ${VAR_NAME:-default_value} - with default value
        - $VAR_NAME - simple substitution without braces
        """
        if isinstance(data, dict):
            return {key: self._resolve_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._resolve_env_vars(item) for item in data]
        elif isinstance(data, str):

            def replace_env_var(match):
                if match.group(1):  # ${VAR_NAME:-default} or ${VAR_NAME}
                    var_name = match.group(1)
                    default_value = match.group(2) if match.group(2) is not None else None
                else:  # $VAR_NAME
                    var_name = match.group(3)
                    default_value = None

                env_value = os.environ.get(var_name)
                if env_value is None:
                    if default_value is not None:
                        return default_value
                    logger.info(
                        f"Environment variable '{var_name}' not found, keeping original value"
                    )
                    return match.group(0)
                return env_value

            pattern = r"\$\{([^}:]+)(?::-(.*?))?\}|\$([A-Za-z_][A-Za-z0-9_]*)"
            return re.sub(pattern, replace_env_var, data)
        else:
            return data

    def _load_config(self) -> tuple[dict[str, Any], dict[str, Any]]:
        """Load configuration from single file.

        Returns:
            Tuple of (expanded_config, unexpanded_config)
        """
        config = self._load_yaml_file(self.config_path)
        unexpanded_config = copy.deepcopy(config)
        expanded_config = self._resolve_env_vars(config)

        logger.info(f"Loaded configuration from {self.config_path}")
        return expanded_config, unexpanded_config

    def get_unexpanded_config(self) -> dict[str, Any]:
        """Get configuration with environment variable placeholders preserved."""
        return copy.deepcopy(self._unexpanded_config)

    def _build_cache_config(self) -> dict[str, Any]:
        """Build cache behaviour settings."""
        policy = str(self._require_config("cache.mutation_policy", DEFAULT_MUTATION_POLICY))
        return {
            "staleness_threshold_seconds": float(
                self._require_config(
                    "cache.staleness_threshold_seconds", DEFAULT_STALENESS_THRESHOLD_SECONDS
                )
            ),
            "mutation_policy": policy.lower(),
        }

    def _build_remote_config(self) -> dict[str, Any]:
        """Build remote data source settings.

        ``base_url`` is only required by the HTTP source, so it is left as None
        here rather than failing the whole configuration.
        """
        return {
            "base_url": self.get("remote.base_url"),
            "collection": self.get("remote.collection", DEFAULT_REMOTE_COLLECTION),
            "timeout_seconds": float(
                self.get("remote.timeout_seconds", DEFAULT_REMOTE_TIMEOUT_SECONDS)
            ),
            "headers": self.get("remote.headers", {}) or {},
        }

    def _build_configurable(self) -> dict[str, Any]:
        """Build the configurable dictionary with pre-computed nested structures."""
        return {
            "cache": self._build_cache_config(),
            "remote": self._build_remote_config(),
            "logging": self.get("logging", {}),
        }

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation path."""
        keys = path.split(".")
        value = self.raw_config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default


# =============================================================================
# GLOBAL CONFIGURATION
# =============================================================================

_default_config: ConfigBuilder | None = None

# Per-path config cache for explicit config paths
_config_cache: dict[str, ConfigBuilder] = {}


def _get_config(config_path: str | None = None, set_as_default: bool = False) -> ConfigBuilder:
    """Get configuration instance (singleton pattern with optional explicit path).

    Args:
        config_path: Optional explicit path to configuration file. If None, uses
                    the CONFIG_FILE env var or cwd/config.yml.
        set_as_default: If True and config_path is provided, also set this config as the
                       default singleton so future calls without config_path use it.

    Returns:
        ConfigBuilder instance for the specified or default configuration
    """
    global _default_config

    if config_path is None:
        if _default_config is None:
            config_file = os.environ.get("CONFIG_FILE")
            _default_config = ConfigBuilder(config_file) if config_file else ConfigBuilder()
            logger.info("Initialized default configuration system")
        return _default_config

    resolved_path = str(Path(config_path).resolve())

    if resolved_path not in _config_cache:
        logger.info(f"Loading configuration from explicit path: {resolved_path}")
        _config_cache[resolved_path] = ConfigBuilder(resolved_path)

    if set_as_default:
        _default_config = _config_cache[resolved_path]
        logger.debug(f"Set explicit config as default: {resolved_path}")

    return _config_cache[resolved_path]


def reset_config() -> None:
    """Forget the default and cached configurations.

    Mostly useful for tests that write their own config.yml files.
    """
    global _default_config
    _default_config = None
    _config_cache.clear()


# =============================================================================
# PUBLIC CONFIGURATION ACCESS
# =============================================================================


def get_config_builder(
    config_path: str | None = None, set_as_default: bool = False
) -> ConfigBuilder:
    """Get configuration builder instance for full config access.

    Examples:
        >>> config = get_config_builder()
        >>> policy = config.get("cache.mutation_policy", "queue")

        >>> config = get_config_builder("/path/to/config.yml", set_as_default=True)
    """
    return _get_config(config_path, set_as_default)


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load raw configuration dictionary, with environment variables resolved."""
    return _get_config(config_path).raw_config


def get_cache_config(config_path: str | None = None) -> dict[str, Any]:
    """Get the pre-computed ``cache`` section."""
    return _get_config(config_path).configurable["cache"]


def get_remote_config(config_path: str | None = None) -> dict[str, Any]:
    """Get the pre-computed ``remote`` section."""
    return _get_config(config_path).configurable["remote"]


def get_config_value(path: str, default: Any = None, config_path: str | None = None) -> Any:
    """
    Get a specific configuration value by dot-separated path.

    Pre-computed sections are consulted first, then the raw configuration.

    Args:
        path: Dot-separated configuration path (e.g., "cache.mutation_policy")
        default: Default value to return if path is not found
        config_path: Optional explicit path to configuration file

    Returns:
        The configuration value at the specified path, or default if not found

    Raises:
        ValueError: If path is empty or None
    """
    if not path:
        raise ValueError("Configuration path cannot be empty or None")

    config = _get_config(config_path)

    value: Any = config.configurable
    for key in path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return config.get(path, default)

    return value
