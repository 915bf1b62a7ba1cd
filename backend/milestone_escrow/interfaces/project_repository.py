"""
Project reference repository interface.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from milestone_escrow.models.project import Project, ProjectAssignmentUpdate, ProjectCreate


class IProjectRepository(ABC):
    """Interface for project reference lookups."""

    @abstractmethod
    async def create(self, owner_id: str, project: ProjectCreate) -> Project:
        """Register a project reference owned by owner_id."""
        pass

    @abstractmethod
    async def get(self, project_id: UUID) -> Project | None:
        """Get a project reference by ID."""
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[Project]:
        """List projects the user owns, is assigned to or supervises."""
        pass

    @abstractmethod
    async def update_assignment(self, project_id: UUID, update: ProjectAssignmentUpdate) -> Project:
        """Replace assignees and/or supervisors."""
        pass
