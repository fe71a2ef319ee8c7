"""
Configuration Module for the Card Invoice Extraction System.

This module provides centralized configuration management using YAML files.
Every threshold used by parsing, OCR, quality scoring and fallback
arbitration is read from settings.yaml rather than hard-coded.

Credentials for the external extraction service can be supplied through
the environment instead of the file:
    INVOICE_EXTERNAL_ENDPOINT, INVOICE_EXTERNAL_CLIENT_ID,
    INVOICE_EXTERNAL_ACCESS_TOKEN, INVOICE_REMOTE_EXTRACTOR_URL
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


# Environment variable -> dotted configuration key
ENV_OVERRIDES = {
    "INVOICE_EXTERNAL_ENDPOINT": "external_service.endpoint",
    "INVOICE_EXTERNAL_CLIENT_ID": "external_service.client_id",
    "INVOICE_EXTERNAL_ACCESS_TOKEN": "external_service.access_token",
    "INVOICE_REMOTE_EXTRACTOR_URL": "remote_extractor.base_url",
}

# Keys holding filesystem paths, resolved against the project root
PATH_KEYS = ("output.directory", "logging.file.path")


class ConfigurationManager:
    """
    Centralized configuration management for the invoice extraction system.

    This class handles loading and providing access to all configuration
    parameters defined in settings.yaml.

    Attributes:
        config_path (Path): Path to the configuration file.
        config (Dict): Loaded configuration dictionary.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("quality.min_score_for_acceptance")
        50
        >>> config.get("ocr.language")
        'por'
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        """
        Singleton pattern to ensure only one configuration instance exists.

        Args:
            config_path: Optional path to configuration file.

        Returns:
            ConfigurationManager instance.
        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        Defaults to config/settings.yaml.
        """
        if self._initialized:
            return

        if config_path is None:
            self.config_path = Path(__file__).parent / "settings.yaml"
        else:
            self.config_path = Path(config_path)

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            yaml.YAMLError: If configuration file is invalid.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        self._apply_env_overrides()
        self._resolve_paths()

    def _apply_env_overrides(self) -> None:
        """Copy non-empty environment variables over their configuration keys."""
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.set(key, value)

    def _resolve_paths(self) -> None:
        """
        Resolve relative paths in configuration to absolute paths.
        Uses project root as base directory.
        """
        project_root = Path(__file__).parent.parent

        for key in PATH_KEYS:
            value = self.get(key)
            if value and not Path(value).is_absolute():
                self.set(key, str(project_root / value))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "ocr.language").
            default: Default value if key doesn't exist.

        Returns:
            Configuration value or default.

        Example:
            >>> config.get("fallback.significant_margin")
            20
            >>> config.get("nonexistent.key", "default_value")
            'default_value'
        """
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value using dot notation.

        Missing intermediate sections are created.

        Args:
            key: Configuration key in dot notation.
            value: New value.
        """
        keys = key.split('.')
        section = self._config
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """
        Get the complete configuration dictionary.

        Returns:
            Complete configuration dictionary.
        """
        return self._config.copy()

    def reload(self) -> None:
        """
        Reload configuration from file.
        Useful for dynamic configuration updates.
        """
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """
        Reset the singleton instance.
        Useful for testing or configuration changes.
        """
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get configuration values.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


def load_config(config_path: Optional[str] = None) -> ConfigurationManager:
    """
    Replace the active configuration with the one at config_path.

    Args:
        config_path: Path to a settings file. None reloads the default file.

    Returns:
        The new ConfigurationManager instance.
    """
    ConfigurationManager.reset()
    return ConfigurationManager(config_path)


__all__ = ['ConfigurationManager', 'get_config', 'load_config']
