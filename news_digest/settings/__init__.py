"""Environment-driven application settings."""

from news_digest.settings.app import AppSettings, get_settings


__all__ = ["AppSettings", "get_settings"]
