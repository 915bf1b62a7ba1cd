"""
Project reference API endpoints.

Projects are registered by their funding party; milestones hang off them.
"""

from uuid import UUID

from fastapi import APIRouter, status

from milestone_escrow.api.deps import Actor, ProjectRepo
from milestone_escrow.api.errors import to_http_exception
from milestone_escrow.core.exceptions import MilestoneEscrowError, NotFoundError, PermissionDenied
from milestone_escrow.models.enums import UserRole
from milestone_escrow.models.project import Project, ProjectAssignmentUpdate, ProjectCreate
from milestone_escrow.services.milestone_service import ensure_can_view

router = APIRouter()

# Roles that can register a project as its owner
PROJECT_OWNER_ROLES = {UserRole.PARTNER, UserRole.SUPER_ADMIN}


def _role_value(actor) -> str | None:
    return actor.role.value if actor.role else None


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(project: ProjectCreate, actor: Actor, repo: ProjectRepo) -> Project:
    """Register a project owned by the current user."""
    if actor.role not in PROJECT_OWNER_ROLES:
        raise to_http_exception(PermissionDenied("register projects", _role_value(actor)))
    return await repo.create(actor.user_id, project)


@router.get("", response_model=list[Project])
async def list_projects(actor: Actor, repo: ProjectRepo) -> list[Project]:
    """List projects the current user owns, works on or supervises."""
    return await repo.list_for_user(actor.user_id)


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: UUID, actor: Actor, repo: ProjectRepo) -> Project:
    """Get a project by ID."""
    try:
        project = await repo.get(project_id)
        if not project:
            raise NotFoundError(f"Project {project_id} not found")
        ensure_can_view(actor, project)
        return project
    except MilestoneEscrowError as e:
        raise to_http_exception(e)


@router.patch("/{project_id}/assignment", response_model=Project)
async def update_assignment(
    project_id: UUID,
    update: ProjectAssignmentUpdate,
    actor: Actor,
    repo: ProjectRepo,
) -> Project:
    """Replace the assignees and/or supervisors of a project."""
    try:
        project = await repo.get(project_id)
        if not project:
            raise NotFoundError(f"Project {project_id} not found")
        if not project.is_owner(actor.user_id) and actor.role != UserRole.SUPER_ADMIN:
            raise PermissionDenied("change the assignment of", _role_value(actor))
        return await repo.update_assignment(project_id, update)
    except MilestoneEscrowError as e:
        raise to_http_exception(e)
