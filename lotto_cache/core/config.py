"""
Centralized configuration management system.

This module provides type-safe configuration loading and validation
with clear error messages and environment-specific defaults.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ..types.models import CacheSettings, NamespaceConfig, default_namespaces
from .exceptions import ConfigurationError


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('true', 'yes', '1', 'y'):
        return True
    if lowered in ('false', 'no', '0', 'n'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


class ConfigManager:
    """
    Configuration manager for the caching engine.

    Reads the ``config/.env`` file (when present) into the process
    environment, then builds a validated ``CacheSettings`` from the
    environment. Per-namespace variables are named
    ``CACHE_<NAMESPACE>_MAX_SIZE``, ``CACHE_<NAMESPACE>_TTL_MINUTES`` and
    ``CACHE_<NAMESPACE>_PERSISTENT``.
    """

    # Settings field -> (environment variable, type)
    GLOBAL_VARS = {
        'environment': ('ENVIRONMENT', str),
        'log_level': ('LOG_LEVEL', str),
        'log_dir': ('LOG_DIR', str),
        'storage_path': ('CACHE_STORAGE_PATH', str),
        'key_prefix': ('CACHE_KEY_PREFIX', str),
        'storage_backups': ('CACHE_STORAGE_BACKUPS', int),
        'cleanup_interval': ('CACHE_CLEANUP_INTERVAL', float),
        'timezone': ('CACHE_TIMEZONE', str),
    }

    # Optional fields where an empty value means "disabled"
    NULLABLE_FIELDS = ('storage_path', 'log_dir')

    NAMESPACE_VARS = {
        'max_size': ('MAX_SIZE', int),
        'default_ttl_minutes': ('TTL_MINUTES', float),
        'persistent': ('PERSISTENT', bool),
    }

    def __init__(self, env_file_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            env_file_path: Optional path to .env file. If not provided,
                          config/.env relative to the working directory is used.
        """
        self._config: Optional[CacheSettings] = None
        self._env_file_path = env_file_path
        self._load_environment(env_file_path)

    def _resolve_env_path(self, env_file_path: Optional[str]) -> Path:
        if env_file_path:
            return Path(env_file_path)
        return Path.cwd() / 'config' / '.env'

    def _load_environment(self, env_file_path: Optional[str] = None) -> None:
        env_path = self._resolve_env_path(env_file_path)
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)

    @staticmethod
    def namespace_var(namespace: str, suffix: str) -> str:
        """Environment variable name for a namespace override."""
        return f"CACHE_{namespace.upper()}_{suffix}"

    @staticmethod
    def _convert(raw: str, var_type: type) -> Any:
        if var_type is bool:
            return _parse_bool(raw)
        if var_type is int:
            return int(raw)
        if var_type is float:
            return float(raw)
        return raw

    def load_config(self) -> CacheSettings:
        """
        Load and validate configuration from environment variables.

        Returns:
            CacheSettings: Validated configuration object

        Raises:
            ConfigurationError: If any variable is malformed or out of range
        """
        if self._config is not None:
            return self._config

        config_data = self._extract_config_values()
        config = CacheSettings(**config_data)
        self._apply_environment_specific_defaults(config)

        try:
            config.validate()
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}",
                validation_errors=[str(e)],
                env_file_path=str(self._resolve_env_path(self._env_file_path))
            ) from e

        self._config = config
        return self._config

    def _extract_config_values(self) -> Dict[str, Any]:
        """
        Extract and convert configuration values from environment variables.

        Raises:
            ConfigurationError: If any values cannot be converted
        """
        config_data: Dict[str, Any] = {}
        invalid_values: Dict[str, Any] = {}

        for field_name, (env_var, var_type) in self.GLOBAL_VARS.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            if field_name in self.NULLABLE_FIELDS and not env_value.strip():
                config_data[field_name] = None
                continue
            try:
                config_data[field_name] = self._convert(env_value, var_type)
            except ValueError:
                invalid_values[env_var] = env_value

        if 'log_level' in config_data:
            config_data['log_level'] = config_data['log_level'].upper()

        namespaces = {}
        for name, defaults in default_namespaces().items():
            values = {
                'max_size': defaults.max_size,
                'default_ttl_minutes': defaults.default_ttl_minutes,
                'persistent': defaults.persistent,
            }
            for field_name, (suffix, var_type) in self.NAMESPACE_VARS.items():
                env_var = self.namespace_var(name, suffix)
                env_value = os.getenv(env_var)
                if env_value is None:
                    continue
                try:
                    values[field_name] = self._convert(env_value, var_type)
                except ValueError:
                    invalid_values[env_var] = env_value
            namespaces[name] = NamespaceConfig(**values)
        config_data['namespaces'] = namespaces

        if invalid_values:
            raise ConfigurationError(
                f"Invalid values for environment variables: {invalid_values}. "
                f"Please check the data types and formats.",
                invalid_values=invalid_values
            )

        return config_data

    def _apply_environment_specific_defaults(self, config: CacheSettings) -> None:
        """Apply environment defaults for every field not set explicitly."""
        for field_name, value in config.get_environment_specific_defaults().items():
            env_var = self.GLOBAL_VARS[field_name][0]
            if os.getenv(env_var) is None:
                setattr(config, field_name, value)

    def get_config(self) -> CacheSettings:
        """
        Get the current configuration.

        Raises:
            ConfigurationError: If configuration hasn't been loaded yet
        """
        if self._config is None:
            raise ConfigurationError("Configuration not loaded. Call load_config() first.")
        return self._config

    def reload_config(self) -> CacheSettings:
        """Re-read the .env file and the environment."""
        self._load_environment(self._env_file_path)
        self._config = None
        return self.load_config()

    def get_config_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the current configuration.

        Returns:
            Dict containing the status, environment and every value
        """
        if not self._config:
            return {'status': 'not_loaded'}

        config_dict = self._config.to_dict()
        return {
            'status': 'loaded',
            'environment': config_dict.get('environment', 'development'),
            'persistence': 'file' if config_dict.get('storage_path') else 'memory',
            'values': config_dict
        }

    @staticmethod
    def create_example_env_file(file_path: str = "config/.env.example") -> None:
        """
        Create an example .env file listing every supported variable.

        Args:
            file_path: Path where to create the example file
        """
        env_path = Path(file_path)
        env_path.parent.mkdir(parents=True, exist_ok=True)

        content = [
            "# Lotto cache configuration",
            "# Copy this file to .env and adjust the values you need",
            "",
            "# Environment Configuration",
            "# ENVIRONMENT=development  # Options: development, testing, production",
            "",
            "# Logging Configuration",
            "# LOG_LEVEL=INFO  # Options: DEBUG, INFO, WARNING, ERROR, CRITICAL",
            "# LOG_DIR=logs  # Empty disables log files",
            "",
            "# Persistence Configuration",
            "# CACHE_STORAGE_PATH=data/cache_storage.json  # Empty keeps the cache in memory only",
            "# CACHE_KEY_PREFIX=lotto_cache:",
            "# CACHE_STORAGE_BACKUPS=0  # Timestamped copies of the storage file to keep, 0 disables",
            "",
            "# Maintenance",
            "# CACHE_CLEANUP_INTERVAL=300  # Seconds between expiry sweeps, 0 disables",
            "# CACHE_TIMEZONE=America/Mexico_City",
            "",
            "# Namespace Overrides",
        ]
        for name, namespace in default_namespaces().items():
            content.extend([
                f"# {ConfigManager.namespace_var(name, 'MAX_SIZE')}={namespace.max_size}",
                f"# {ConfigManager.namespace_var(name, 'TTL_MINUTES')}={namespace.default_ttl_minutes:g}",
                f"# {ConfigManager.namespace_var(name, 'PERSISTENT')}={str(namespace.persistent).lower()}",
            ])

        with open(env_path, 'w', encoding='utf-8') as f:
            f.write('\n'.join(content) + '\n')


def load_config(env_file_path: Optional[str] = None) -> CacheSettings:
    """Load configuration with a fresh ``ConfigManager``."""
    return ConfigManager(env_file_path).load_config()
