"""
Configuration module for tokenmeter.

Uses pydantic-settings for environment variable loading.
"""

from tokenmeter.config.settings import Settings, find_project_root
from tokenmeter.config.sources import ConfigFileError

__all__ = ["ConfigFileError", "Settings", "find_project_root"]
