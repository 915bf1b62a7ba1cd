"""Abstract interfaces for infrastructure abstraction."""

from milestone_escrow.interfaces.auth_provider import IAuthProvider
from milestone_escrow.interfaces.escrow_ledger import IEscrowLedger
from milestone_escrow.interfaces.milestone_repository import IMilestoneRepository
from milestone_escrow.interfaces.notification_dispatcher import INotificationDispatcher
from milestone_escrow.interfaces.notification_repository import INotificationRepository
from milestone_escrow.interfaces.project_repository import IProjectRepository

__all__ = [
    "IAuthProvider",
    "IEscrowLedger",
    "IMilestoneRepository",
    "INotificationDispatcher",
    "INotificationRepository",
    "IProjectRepository",
]
