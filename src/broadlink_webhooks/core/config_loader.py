"""Configuration loading and validation utilities for the browser automation."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .models.applet_models import AutomationConfiguration
from .config import settings

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


class AutomationConfigLoader:
    """Loads and validates the automation configuration."""

    DEFAULT_CONFIG = {
        "automation": {
            "waits": {
                "long_wait_seconds": 10.0,
                "short_wait_seconds": 0.1,
                "poll_interval_seconds": 0.1
            },
            "retries": {
                "max_task_attempts": 3
            },
            "executor": {
                "max_activation_clicks": 100,
                "max_missing_ticks": 100,
                "max_url_poll_ticks": 1200,
                "strict_conditions": False
            },
            "browser": {
                "window_width": 690,
                "window_height": 1000
            }
        }
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config loader with optional custom path."""
        self.config_path = Path(
            config_path or settings.AUTOMATION_CONFIG_PATH)
        self._config_cache: Optional[AutomationConfiguration] = None
        self._config_file_mtime: Optional[float] = None

    def load_config(self, force_reload: bool = False) -> AutomationConfiguration:
        """Load and validate the automation configuration.

        Args:
            force_reload: Force reload even if cached config exists

        Returns:
            AutomationConfiguration: Validated configuration object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not force_reload and self._config_cache and self._is_config_current():
            return self._config_cache

        try:
            config_data = self._load_config_file()
            automation_config = self._parse_automation_config(config_data)
            self._validate_config(automation_config)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load automation configuration: {e}")
            raise ConfigurationError(
                f"Configuration loading failed: {e}") from e

        self._config_cache = automation_config
        self._config_file_mtime = (
            self.config_path.stat().st_mtime if self.config_path.exists() else None)

        logger.info(
            f"Loaded automation configuration from {self.config_path}")
        return automation_config

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file or return defaults."""
        if not self.config_path.exists():
            logger.info(
                f"Config file {self.config_path} not found, using defaults")
            return self._deep_merge(self.DEFAULT_CONFIG, {})

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        # Merge with defaults to ensure all keys exist
        return self._deep_merge(self.DEFAULT_CONFIG, config_data)

    def _parse_automation_config(self, config_data: Dict[str, Any]) -> AutomationConfiguration:
        """Parse configuration data into AutomationConfiguration object."""
        automation_section = config_data.get("automation", {})

        waits = automation_section.get("waits", {})
        retries = automation_section.get("retries", {})
        executor = automation_section.get("executor", {})
        browser = automation_section.get("browser", {})

        try:
            return AutomationConfiguration(
                long_wait_seconds=float(waits.get("long_wait_seconds", 10.0)),
                short_wait_seconds=float(waits.get("short_wait_seconds", 0.1)),
                poll_interval_seconds=float(waits.get("poll_interval_seconds", 0.1)),
                max_task_attempts=int(retries.get("max_task_attempts", 3)),
                max_activation_clicks=int(executor.get("max_activation_clicks", 100)),
                max_missing_ticks=int(executor.get("max_missing_ticks", 100)),
                max_url_poll_ticks=int(executor.get("max_url_poll_ticks", 1200)),
                strict_conditions=bool(executor.get("strict_conditions", False)),
                window_width=int(browser.get("window_width", 690)),
                window_height=int(browser.get("window_height", 1000))
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}")

    def _validate_config(self, config: AutomationConfiguration) -> None:
        """Validate configuration values.

        Args:
            config: Configuration to validate

        Raises:
            ConfigurationError: If validation fails
        """
        errors = []

        if config.long_wait_seconds < 1 or config.long_wait_seconds > 120:
            errors.append("long_wait_seconds must be between 1 and 120")

        if config.short_wait_seconds <= 0 or config.short_wait_seconds > 5:
            errors.append("short_wait_seconds must be greater than 0 and at most 5")

        if config.short_wait_seconds > config.long_wait_seconds:
            errors.append("short_wait_seconds must not exceed long_wait_seconds")

        if config.poll_interval_seconds <= 0 or config.poll_interval_seconds > 5:
            errors.append("poll_interval_seconds must be greater than 0 and at most 5")

        if config.max_task_attempts < 1 or config.max_task_attempts > 10:
            errors.append("max_task_attempts must be between 1 and 10")

        if config.max_activation_clicks < 1 or config.max_activation_clicks > 1000:
            errors.append("max_activation_clicks must be between 1 and 1000")

        if config.max_missing_ticks < 1 or config.max_missing_ticks > 1000:
            errors.append("max_missing_ticks must be between 1 and 1000")

        if config.max_url_poll_ticks < 10:
            errors.append("max_url_poll_ticks must be at least 10")

        if config.window_width < 200 or config.window_height < 200:
            errors.append("window_width and window_height must be at least 200")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors))

    def _is_config_current(self) -> bool:
        """Check if cached config is still current."""
        if not self.config_path.exists():
            return self._config_file_mtime is None

        current_mtime = self.config_path.stat().st_mtime
        return self._config_file_mtime == current_mtime

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = {}
        for key, value in base.items():
            result[key] = self._deep_merge(value, {}) if isinstance(value, dict) else value

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


# Global config loader instance
config_loader = AutomationConfigLoader()


def get_automation_config(config_path: Optional[str] = None,
                          force_reload: bool = False) -> AutomationConfiguration:
    """Get the automation configuration.

    A config_path different from the current loader's replaces the global loader.

    Args:
        config_path: Optional YAML path overriding AUTOMATION_CONFIG_PATH
        force_reload: Force reload from file

    Returns:
        AutomationConfiguration: Current configuration
    """
    global config_loader
    if config_path and Path(config_path) != config_loader.config_path:
        config_loader = AutomationConfigLoader(config_path)
    return config_loader.load_config(force_reload)
