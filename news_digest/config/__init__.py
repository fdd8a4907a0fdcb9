"""Configuration loading and validation."""

from news_digest.config.errors import ConfigurationError
from news_digest.config.loader import ConfigLoader
from news_digest.config.schemas import Settings, UserPreferences, UserProfile


__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "Settings",
    "UserPreferences",
    "UserProfile",
]
