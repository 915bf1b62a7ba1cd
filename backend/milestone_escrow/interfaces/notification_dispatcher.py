"""
Notification dispatcher interface.

The transition engine hands every committed transition to a dispatcher.
Delivery is best effort; a dispatcher failure never undoes a transition.
"""

from abc import ABC, abstractmethod

from milestone_escrow.models.events import MilestoneTransitionEvent


class INotificationDispatcher(ABC):
    """Interface for turning transition events into notifications."""

    @abstractmethod
    async def dispatch(self, event: MilestoneTransitionEvent) -> None:
        """Deliver notifications for a transition event."""
        pass
