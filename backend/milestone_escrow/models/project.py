"""
Project reference model definitions.

Projects are owned by the wider platform; this service only keeps the
fields it needs to decide ownership, assignment and notification audience.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ProjectBase(BaseModel):
    """Base project reference fields."""

    name: str = Field(..., min_length=1, max_length=200, description="Project name")
    assignee_ids: list[str] = Field(
        default_factory=list,
        description="Accepted participants doing the work",
    )
    supervisor_ids: list[str] = Field(
        default_factory=list,
        description="Supervisors reviewing submitted work",
    )


class ProjectCreate(ProjectBase):
    """Schema for registering a project reference."""

    pass


class ProjectAssignmentUpdate(BaseModel):
    """Schema for replacing a project's assignment."""

    assignee_ids: list[str] | None = None
    supervisor_ids: list[str] | None = None


class Project(ProjectBase):
    """Complete project reference."""

    id: UUID
    owner_id: str = Field(..., description="Funding party (project owner) user ID")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def is_owner(self, user_id: str) -> bool:
        return user_id == self.owner_id

    def is_assignee(self, user_id: str) -> bool:
        return user_id in self.assignee_ids

    def is_supervisor(self, user_id: str) -> bool:
        return user_id in self.supervisor_ids
