"""
Notification model definitions.

One notification is one recipient's record of a milestone transition.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from milestone_escrow.models.enums import MilestoneStatus


class NotificationType(str, Enum):
    """Types of notifications."""

    MILESTONE_FUNDED = "milestone_funded"
    MILESTONE_SUBMITTED = "milestone_submitted"
    MILESTONE_SUPERVISOR_APPROVED = "milestone_supervisor_approved"
    MILESTONE_CHANGES_REQUESTED = "milestone_changes_requested"
    MILESTONE_RELEASED = "milestone_released"
    MILESTONE_COMPLETED = "milestone_completed"
    MILESTONE_DISPUTED = "milestone_disputed"


class NotificationCreate(BaseModel):
    """Schema for creating a notification."""

    user_id: str = Field(..., description="Recipient user ID")
    type: NotificationType
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=500)
    milestone_id: UUID
    project_id: UUID
    milestone_status: MilestoneStatus = Field(..., description="Status the milestone moved into")
    actor_id: str = Field(..., description="User whose action produced the notification")


class Notification(NotificationCreate):
    """Stored notification."""

    id: UUID
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @computed_field
    @property
    def is_read(self) -> bool:
        return self.read_at is not None
