"""Recipient directory boundary.

Group membership and contact details (email address, phone number, push
token) live in an external directory or user service. The engine only needs
the two lookups on :class:`RecipientDirectory`; deployments install their
own implementation with :func:`set_recipient_directory`.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from notify_service.features.notifications.models import Channel

logger = logging.getLogger(__name__)


@runtime_checkable
class RecipientDirectory(Protocol):
    """Resolves groups to users and users to channel addresses."""

    async def resolve_group_members(self, tenant_id: str, group: str) -> list[str]:
        """User ids belonging to ``group`` within the tenant."""
        ...

    async def resolve_target(self, tenant_id: str, user_id: str, channel: str) -> str | None:
        """Delivery address for ``user_id`` on ``channel``, or None if unknown."""
        ...


class InMemoryRecipientDirectory:
    """Directory backed by plain dictionaries.

    Without explicit contacts, user ids that look like email addresses are
    used for email and every user id is its own in-app target.

    Example:
        directory = InMemoryRecipientDirectory(
            groups={("acme", "technicians"): ["u-1", "u-2"]},
            contacts={("acme", "u-1"): {"sms": "+15550100"}},
        )
    """

    def __init__(
        self,
        groups: dict[tuple[str, str], list[str]] | None = None,
        contacts: dict[tuple[str, str], dict[str, str]] | None = None,
    ) -> None:
        self._groups = {key: list(members) for key, members in (groups or {}).items()}
        self._contacts = {key: dict(value) for key, value in (contacts or {}).items()}

    def add_member(self, tenant_id: str, group: str, user_id: str) -> None:
        members = self._groups.setdefault((tenant_id, group), [])
        if user_id not in members:
            members.append(user_id)

    def set_contact(self, tenant_id: str, user_id: str, channel: str, target: str) -> None:
        self._contacts.setdefault((tenant_id, user_id), {})[channel] = target

    async def resolve_group_members(self, tenant_id: str, group: str) -> list[str]:
        return list(self._groups.get((tenant_id, group), []))

    async def resolve_target(self, tenant_id: str, user_id: str, channel: str) -> str | None:
        explicit = self._contacts.get((tenant_id, user_id), {}).get(channel)
        if explicit:
            return explicit
        if channel == Channel.IN_APP:
            return user_id
        if channel == Channel.EMAIL and "@" in user_id:
            return user_id
        return None


_directory: RecipientDirectory | None = None


def get_recipient_directory() -> RecipientDirectory:
    """Get the process-wide recipient directory."""
    global _directory
    if _directory is None:
        _directory = InMemoryRecipientDirectory()
        logger.debug("Using in-memory recipient directory")
    return _directory


def set_recipient_directory(directory: RecipientDirectory | None) -> None:
    """Install a directory implementation; None restores the default."""
    global _directory
    _directory = directory


__all__ = [
    "InMemoryRecipientDirectory",
    "RecipientDirectory",
    "get_recipient_directory",
    "set_recipient_directory",
]
