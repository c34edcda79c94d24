"""
Configuration module for storehook.

Uses pydantic-settings for environment variable and YAML file loading.
"""

from storehook.config.settings import Settings, get_config_file

__all__ = ["Settings", "get_config_file"]
