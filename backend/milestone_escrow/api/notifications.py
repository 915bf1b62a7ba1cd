"""
Notification inbox endpoints.

Every route reads or updates the current user's own inbox only.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel

from milestone_escrow.api.deps import Actor, NotificationRepo
from milestone_escrow.api.errors import to_http_exception
from milestone_escrow.core.exceptions import NotFoundError
from milestone_escrow.models.notification import Notification

router = APIRouter()


class InboxPage(BaseModel):
    notifications: list[Notification]
    unread_count: int


class MarkReadResult(BaseModel):
    updated_count: int


@router.get("", response_model=InboxPage)
async def list_notifications(
    actor: Actor,
    repo: NotificationRepo,
    project_id: Optional[UUID] = Query(None, description="Only this project"),
    milestone_id: Optional[UUID] = Query(None, description="Only this milestone"),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> InboxPage:
    notifications = await repo.list_for_user(
        actor.user_id,
        unread_only=unread_only,
        project_id=project_id,
        milestone_id=milestone_id,
        limit=limit,
        offset=offset,
    )
    return InboxPage(
        notifications=notifications,
        unread_count=await repo.count_unread(actor.user_id, project_id=project_id),
    )


@router.post("/read-all", response_model=MarkReadResult)
async def mark_all_read(
    actor: Actor,
    repo: NotificationRepo,
    project_id: Optional[UUID] = Query(None, description="Only this project"),
) -> MarkReadResult:
    return MarkReadResult(updated_count=await repo.mark_read(actor.user_id, project_id=project_id))


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(notification_id: UUID, actor: Actor, repo: NotificationRepo) -> Notification:
    """Mark one notification as read. Reading it twice keeps the first read time."""
    await repo.mark_read(actor.user_id, [notification_id])
    notification = await repo.get(actor.user_id, notification_id)
    if notification is None:
        raise to_http_exception(NotFoundError(f"Notification {notification_id} not found"))
    return notification
