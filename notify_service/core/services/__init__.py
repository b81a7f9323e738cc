"""Core services shared by feature modules."""

from notify_service.core.services.base import BaseService

__all__ = ["BaseService"]
