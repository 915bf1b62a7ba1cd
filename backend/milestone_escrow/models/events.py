"""
Workflow event emitted after a committed milestone transition.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from milestone_escrow.models.enums import MilestoneAction, MilestoneStatus, UserRole
from milestone_escrow.utils.datetime_utils import now_utc


class MilestoneTransitionEvent(BaseModel):
    """A transition that has been persisted."""

    milestone_id: UUID
    project_id: UUID
    milestone_title: str
    action: MilestoneAction
    old_status: MilestoneStatus
    new_status: MilestoneStatus
    actor_id: str
    actor_role: Optional[UserRole] = None
    occurred_at: datetime = Field(default_factory=now_utc)
