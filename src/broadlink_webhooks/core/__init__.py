"""
Core module for broadlink-webhooks.

This module contains:
- config.py: Environment settings
- config_loader.py: YAML automation configuration
- errors.py: Error taxonomy
- logging_config.py: Logging configuration
"""

__all__ = ["config", "config_loader", "errors", "logging_config"]
