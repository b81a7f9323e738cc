"""LRU-cached settings loaders.

Settings are validated once and cached for the lifetime of the process.

Usage:
    from notify_service.core.settings import get_notification_settings

    settings = get_notification_settings()

Testing:
    Clear the caches after changing environment variables:
    clear_all_caches()
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .channels import ChannelSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .rabbit import RabbitSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings."""
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Get cached SMTP settings."""
    return EmailSettings()


@lru_cache(maxsize=1)
def get_channel_settings() -> ChannelSettings:
    """Get cached SMS/push/webhook gateway settings."""
    return ChannelSettings()


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """Get cached delivery engine settings."""
    return NotificationSettings()


@lru_cache(maxsize=1)
def get_rabbit_settings() -> RabbitSettings:
    """Get cached RabbitMQ settings."""
    return RabbitSettings()


def clear_all_caches() -> None:
    """Clear every settings cache so the next call reloads from the environment."""
    get_app_settings.cache_clear()
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_email_settings.cache_clear()
    get_channel_settings.cache_clear()
    get_notification_settings.cache_clear()
    get_rabbit_settings.cache_clear()
