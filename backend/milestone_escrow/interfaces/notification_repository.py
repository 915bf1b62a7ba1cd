"""
Notification repository interface.

Each recipient has an inbox of milestone notifications. Filters narrow the
inbox to one project or one milestone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from milestone_escrow.models.notification import Notification, NotificationCreate


class INotificationRepository(ABC):
    """Interface for the notification inbox store."""

    @abstractmethod
    async def create_bulk(self, notifications: list[NotificationCreate]) -> list[Notification]:
        """Store the notifications produced by one transition."""
        pass

    @abstractmethod
    async def get(self, user_id: str, notification_id: UUID) -> Optional[Notification]:
        """Get one notification from the user's inbox."""
        pass

    @abstractmethod
    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        project_id: Optional[UUID] = None,
        milestone_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        """Inbox page, newest first."""
        pass

    @abstractmethod
    async def count_unread(self, user_id: str, project_id: Optional[UUID] = None) -> int:
        pass

    @abstractmethod
    async def mark_read(
        self,
        user_id: str,
        notification_ids: Optional[list[UUID]] = None,
        project_id: Optional[UUID] = None,
    ) -> int:
        """
        Mark unread notifications as read.

        Args:
            user_id: Inbox owner
            notification_ids: Only these notifications; every unread one when None
            project_id: Only notifications about this project

        Returns:
            Number of notifications that changed
        """
        pass
