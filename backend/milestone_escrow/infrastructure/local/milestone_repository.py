"""
SQLite implementation of Milestone repository.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, select, update

from milestone_escrow.core.exceptions import ConcurrentModificationError, NotFoundError
from milestone_escrow.infrastructure.local.database import MilestoneORM, get_session_factory
from milestone_escrow.interfaces.milestone_repository import IMilestoneRepository
from milestone_escrow.models.enums import EscrowStatus, MilestoneStatus
from milestone_escrow.models.milestone import Milestone, MilestoneCreate, MilestoneState
from milestone_escrow.utils.datetime_utils import now_utc

# Columns the edit command may touch. Workflow columns are written only by save_state.
EDITABLE_COLUMNS = frozenset({"title", "scope", "acceptance_criteria", "due_date", "amount", "currency"})


class SqliteMilestoneRepository(IMilestoneRepository):
    """SQLite implementation of milestone repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: MilestoneORM) -> Milestone:
        """Convert ORM object to Pydantic model."""
        return Milestone.model_validate(orm, from_attributes=True)

    async def create(
        self,
        user_id: str,
        milestone: MilestoneCreate,
        currency: str,
        status: MilestoneStatus,
    ) -> Milestone:
        """Create a new milestone."""
        async with self._session_factory() as session:
            now = now_utc()
            orm = MilestoneORM(
                id=str(uuid4()),
                project_id=str(milestone.project_id),
                created_by=user_id,
                title=milestone.title,
                scope=milestone.scope,
                acceptance_criteria=milestone.acceptance_criteria,
                due_date=milestone.due_date,
                amount=milestone.amount,
                currency=currency,
                status=status.value,
                supervisor_gate=False,
                escrow_status=EscrowStatus.PENDING.value,
                version=1,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get_by_id(self, milestone_id: UUID) -> Milestone | None:
        """Get a milestone by ID."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneORM).where(MilestoneORM.id == str(milestone_id))
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_by_project(self, project_id: UUID) -> list[Milestone]:
        """List milestones for a project."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneORM)
                .where(MilestoneORM.project_id == str(project_id))
                .order_by(MilestoneORM.created_at)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def update_fields(
        self, milestone_id: UUID, expected_version: int, fields: dict[str, Any]
    ) -> Milestone:
        """Write term fields with a version check."""
        values = {k: v for k, v in fields.items() if k in EDITABLE_COLUMNS}
        return await self._compare_and_set(milestone_id, expected_version, values)

    async def save_state(
        self, milestone_id: UUID, expected_version: int, state: MilestoneState
    ) -> Milestone:
        """Write workflow state with a version check."""
        values = {
            "status": state.status.value,
            "supervisor_gate": state.supervisor_gate,
            "escrow_status": state.escrow_status.value,
            "submission_notes": state.submission_notes,
            "dispute_reason": state.dispute_reason,
        }
        return await self._compare_and_set(milestone_id, expected_version, values)

    async def _compare_and_set(
        self, milestone_id: UUID, expected_version: int, values: dict[str, Any]
    ) -> Milestone:
        async with self._session_factory() as session:
            result = await session.execute(
                update(MilestoneORM)
                .where(
                    and_(
                        MilestoneORM.id == str(milestone_id),
                        MilestoneORM.version == expected_version,
                    )
                )
                .values(**values, version=expected_version + 1, updated_at=now_utc())
            )
            if result.rowcount == 0:
                await session.rollback()
                exists = await session.execute(
                    select(MilestoneORM.version).where(MilestoneORM.id == str(milestone_id))
                )
                if exists.scalar_one_or_none() is None:
                    raise NotFoundError(f"Milestone {milestone_id} not found")
                raise ConcurrentModificationError(
                    f"Milestone {milestone_id} was modified concurrently",
                    details={"expected_version": expected_version},
                )
            await session.commit()

            refreshed = await session.execute(
                select(MilestoneORM)
                .where(MilestoneORM.id == str(milestone_id))
                .execution_options(populate_existing=True)
            )
            return self._orm_to_model(refreshed.scalar_one())

    async def delete(self, milestone_id: UUID) -> bool:
        """Delete a milestone. Returns True if deleted, False if not found."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(MilestoneORM).where(MilestoneORM.id == str(milestone_id))
            )
            await session.commit()
            return result.rowcount > 0
