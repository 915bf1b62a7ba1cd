"""
SQLite implementation of the project reference repository.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select

from milestone_escrow.core.exceptions import NotFoundError
from milestone_escrow.infrastructure.local.database import ProjectORM, get_session_factory
from milestone_escrow.interfaces.project_repository import IProjectRepository
from milestone_escrow.models.project import Project, ProjectAssignmentUpdate, ProjectCreate
from milestone_escrow.utils.datetime_utils import now_utc


class SqliteProjectRepository(IProjectRepository):
    """SQLite implementation of project reference repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: ProjectORM) -> Project:
        return Project(
            id=UUID(orm.id),
            owner_id=orm.owner_id,
            name=orm.name,
            assignee_ids=list(orm.assignee_ids or []),
            supervisor_ids=list(orm.supervisor_ids or []),
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    async def create(self, owner_id: str, project: ProjectCreate) -> Project:
        async with self._session_factory() as session:
            now = now_utc()
            orm = ProjectORM(
                id=str(uuid4()),
                owner_id=owner_id,
                name=project.name,
                assignee_ids=list(project.assignee_ids),
                supervisor_ids=list(project.supervisor_ids),
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, project_id: UUID) -> Project | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ProjectORM).where(ProjectORM.id == str(project_id))
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_for_user(self, user_id: str) -> list[Project]:
        # JSON membership is filtered in Python; SQLite has no portable JSON contains.
        async with self._session_factory() as session:
            result = await session.execute(select(ProjectORM).order_by(ProjectORM.created_at))
            projects = [self._orm_to_model(orm) for orm in result.scalars().all()]
        return [
            p for p in projects
            if p.owner_id == user_id or user_id in p.assignee_ids or user_id in p.supervisor_ids
        ]

    async def update_assignment(self, project_id: UUID, update: ProjectAssignmentUpdate) -> Project:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ProjectORM).where(ProjectORM.id == str(project_id))
            )
            orm = result.scalar_one_or_none()
            if not orm:
                raise NotFoundError(f"Project {project_id} not found")

            if update.assignee_ids is not None:
                orm.assignee_ids = list(update.assignee_ids)
            if update.supervisor_ids is not None:
                orm.supervisor_ids = list(update.supervisor_ids)
            orm.updated_at = now_utc()
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
