"""Modular Pydantic Settings v2 configuration.

One frozen ``BaseSettings`` class per concern, each with its own environment
prefix, loaded through LRU-cached getters:

    APP_      application / HTTP
    DB_       database engine
    LOG_      logging
    EMAIL_    SMTP relay
    CHANNEL_  SMS, push and webhook gateways
    NOTIFY_   delivery engine (retries, sweeps, fallbacks)
    RABBIT_   taskiq broker
"""

from __future__ import annotations

from .app import AppSettings
from .channels import ChannelSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_channel_settings,
    get_db_settings,
    get_email_settings,
    get_logging_settings,
    get_notification_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .rabbit import RabbitSettings

__all__ = [
    "AppSettings",
    "ChannelSettings",
    "DatabaseSettings",
    "EmailSettings",
    "LoggingSettings",
    "NotificationSettings",
    "RabbitSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_channel_settings",
    "get_db_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_rabbit_settings",
]
