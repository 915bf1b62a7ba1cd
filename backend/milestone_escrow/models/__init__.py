"""Pydantic models (schemas) for the application."""

from milestone_escrow.models.enums import EscrowStatus, MilestoneAction, MilestoneStatus, UserRole
from milestone_escrow.models.escrow import EscrowRecord, FundingReceipt, ReleaseReceipt
from milestone_escrow.models.events import MilestoneTransitionEvent
from milestone_escrow.models.milestone import (
    DisputeRequest,
    Milestone,
    MilestoneCreate,
    MilestoneState,
    MilestoneUpdate,
    SubmitWorkRequest,
)
from milestone_escrow.models.notification import Notification, NotificationCreate, NotificationType
from milestone_escrow.models.project import Project, ProjectAssignmentUpdate, ProjectCreate
from milestone_escrow.models.user import ActorContext, User

__all__ = [
    # Enums
    "MilestoneStatus",
    "EscrowStatus",
    "UserRole",
    "MilestoneAction",
    "NotificationType",
    # Milestone
    "Milestone",
    "MilestoneCreate",
    "MilestoneUpdate",
    "MilestoneState",
    "SubmitWorkRequest",
    "DisputeRequest",
    "MilestoneTransitionEvent",
    # Escrow
    "FundingReceipt",
    "ReleaseReceipt",
    "EscrowRecord",
    # Project
    "Project",
    "ProjectCreate",
    "ProjectAssignmentUpdate",
    # Notification
    "Notification",
    "NotificationCreate",
    # Users
    "User",
    "ActorContext",
]
