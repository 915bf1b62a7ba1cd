"""
SQLite notification inbox.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import desc, func, select, update

from milestone_escrow.infrastructure.local.database import NotificationORM, get_session_factory
from milestone_escrow.interfaces.notification_repository import INotificationRepository
from milestone_escrow.models.enums import MilestoneStatus
from milestone_escrow.models.notification import Notification, NotificationCreate, NotificationType
from milestone_escrow.utils.datetime_utils import ensure_utc, now_utc


def _inbox(
    user_id: str,
    unread_only: bool = False,
    project_id: Optional[UUID] = None,
    milestone_id: Optional[UUID] = None,
) -> list:
    conditions = [NotificationORM.user_id == user_id]
    if unread_only:
        conditions.append(NotificationORM.read_at.is_(None))
    if project_id is not None:
        conditions.append(NotificationORM.project_id == str(project_id))
    if milestone_id is not None:
        conditions.append(NotificationORM.milestone_id == str(milestone_id))
    return conditions


class SqliteNotificationRepository(INotificationRepository):
    """Notification inbox stored in the local SQLite database."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: NotificationORM) -> Notification:
        return Notification(
            id=UUID(orm.id),
            user_id=orm.user_id,
            type=NotificationType(orm.type),
            title=orm.title,
            message=orm.message,
            milestone_id=UUID(orm.milestone_id),
            project_id=UUID(orm.project_id),
            milestone_status=MilestoneStatus(orm.milestone_status),
            actor_id=orm.actor_id,
            read_at=ensure_utc(orm.read_at),
            created_at=ensure_utc(orm.created_at),
        )

    async def create_bulk(self, notifications: list[NotificationCreate]) -> list[Notification]:
        if not notifications:
            return []

        created_at = now_utc()
        orms = [
            NotificationORM(
                id=str(uuid4()),
                user_id=n.user_id,
                type=n.type.value,
                title=n.title,
                message=n.message,
                milestone_id=str(n.milestone_id),
                project_id=str(n.project_id),
                milestone_status=n.milestone_status.value,
                actor_id=n.actor_id,
                created_at=created_at,
            )
            for n in notifications
        ]
        created = [self._orm_to_model(orm) for orm in orms]
        async with self._session_factory() as session:
            session.add_all(orms)
            await session.commit()
        return created

    async def get(self, user_id: str, notification_id: UUID) -> Optional[Notification]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(NotificationORM).where(
                    NotificationORM.id == str(notification_id), *_inbox(user_id)
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        project_id: Optional[UUID] = None,
        milestone_id: Optional[UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(NotificationORM)
                .where(*_inbox(user_id, unread_only, project_id, milestone_id))
                .order_by(desc(NotificationORM.created_at), NotificationORM.id)
                .offset(offset)
                .limit(limit)
            )
            return [self._orm_to_model(orm) for orm in result.scalars()]

    async def count_unread(self, user_id: str, project_id: Optional[UUID] = None) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(NotificationORM).where(
                    *_inbox(user_id, unread_only=True, project_id=project_id)
                )
            )
            return result.scalar_one()

    async def mark_read(
        self,
        user_id: str,
        notification_ids: Optional[list[UUID]] = None,
        project_id: Optional[UUID] = None,
    ) -> int:
        conditions = _inbox(user_id, unread_only=True, project_id=project_id)
        if notification_ids is not None:
            if not notification_ids:
                return 0
            conditions.append(NotificationORM.id.in_([str(i) for i in notification_ids]))

        async with self._session_factory() as session:
            result = await session.execute(
                update(NotificationORM).where(*conditions).values(read_at=now_utc())
            )
            await session.commit()
            return result.rowcount
