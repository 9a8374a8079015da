"""Configuration module for chatbridge."""

from chatbridge.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
