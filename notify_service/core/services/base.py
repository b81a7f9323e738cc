"""Base service class for business logic."""

from __future__ import annotations

import logging

from notify_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for service classes.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR
        - self._lazy: Lazy logger for DEBUG (callables evaluated only when enabled)

    Example:
        class SubscriptionService(BaseService):
            async def create(self, session, payload):
                self.logger.info("Creating subscription", extra={"tenant_id": payload.tenant_id})
                self._lazy.debug(lambda: f"Payload: {payload.model_dump()}")
    """

    def __init__(self) -> None:
        class_name = self.__class__.__name__
        self.logger = logging.getLogger(class_name)
        self._lazy = get_lazy_logger(class_name)
