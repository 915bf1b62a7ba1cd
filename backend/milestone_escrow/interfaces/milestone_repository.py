"""
Milestone repository interface.

Defines the contract for milestone data operations.
"""

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from milestone_escrow.models.enums import MilestoneStatus
from milestone_escrow.models.milestone import Milestone, MilestoneCreate, MilestoneState


class IMilestoneRepository(ABC):
    """Interface for milestone repository operations."""

    @abstractmethod
    async def create(
        self,
        user_id: str,
        milestone: MilestoneCreate,
        currency: str,
        status: MilestoneStatus,
    ) -> Milestone:
        """Create a new milestone in its initial status."""
        pass

    @abstractmethod
    async def get_by_id(self, milestone_id: UUID) -> Milestone | None:
        """Get a milestone by ID."""
        pass

    @abstractmethod
    async def list_by_project(self, project_id: UUID) -> list[Milestone]:
        """List milestones for a project, oldest first."""
        pass

    @abstractmethod
    async def update_fields(
        self, milestone_id: UUID, expected_version: int, fields: dict[str, Any]
    ) -> Milestone:
        """
        Write term fields (title, scope, amount, ...) if the stored version matches.

        Raises ConcurrentModificationError on version mismatch.
        """
        pass

    @abstractmethod
    async def save_state(
        self, milestone_id: UUID, expected_version: int, state: MilestoneState
    ) -> Milestone:
        """
        Write workflow state if the stored version matches.

        Raises ConcurrentModificationError on version mismatch.
        """
        pass

    @abstractmethod
    async def delete(self, milestone_id: UUID) -> bool:
        """Delete a milestone. Returns True if deleted, False if not found."""
        pass
