"""Core database package: declarative base, mixins, column types and repository."""

from notify_service.core.database.base import (
    Base,
    TenantMixin,
    TimestampMixin,
    UUIDv7PKMixin,
    UUIDv7TimestampedBase,
    generate_uuid7,
)
from notify_service.core.database.exceptions import NotFoundError, RepositoryError
from notify_service.core.database.repository import BaseRepository
from notify_service.core.database.types import JSONType, StringArray

__all__ = [
    "Base",
    "BaseRepository",
    "JSONType",
    "NotFoundError",
    "RepositoryError",
    "StringArray",
    "TenantMixin",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "UUIDv7TimestampedBase",
    "generate_uuid7",
]
