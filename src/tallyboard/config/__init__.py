"""Configuration module for Tallyboard."""

from tallyboard.config.logging import configure_logging
from tallyboard.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]
