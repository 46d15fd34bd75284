"""Configuration module: exports Settings and load_settings."""

from vatcheck.config.loader import load_settings
from vatcheck.config.settings import Settings

__all__ = ["Settings", "load_settings"]
