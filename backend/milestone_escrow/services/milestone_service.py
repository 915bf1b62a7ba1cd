"""
Milestone workflow service.

Command surface for the milestone lifecycle. Every mutating command runs
under a per-milestone lock and follows the same sequence:

    load -> role check -> replay check -> gate check -> status check
         -> escrow ledger call -> versioned state write -> notify

The ledger is called before the state write. Ledger adapters are
idempotent per milestone, so a write that loses a version race can be
retried without moving money twice.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from uuid import UUID

from milestone_escrow.core.config import get_settings
from milestone_escrow.core.exceptions import (
    ConcurrentModificationError,
    EditNotAllowed,
    EscrowOperationFailed,
    GateNotSatisfied,
    InvalidTransition,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from milestone_escrow.core.logger import setup_logger
from milestone_escrow.interfaces.escrow_ledger import IEscrowLedger
from milestone_escrow.interfaces.milestone_repository import IMilestoneRepository
from milestone_escrow.interfaces.notification_dispatcher import INotificationDispatcher
from milestone_escrow.interfaces.project_repository import IProjectRepository
from milestone_escrow.models.enums import EscrowStatus, MilestoneAction, MilestoneStatus, UserRole
from milestone_escrow.models.events import MilestoneTransitionEvent
from milestone_escrow.models.milestone import Milestone, MilestoneCreate, MilestoneUpdate
from milestone_escrow.models.project import Project
from milestone_escrow.models.user import ActorContext
from milestone_escrow.services.milestone_permissions import (
    AMOUNT_EDITABLE_STATUSES,
    DELETABLE_STATUSES,
    EDITABLE_STATUSES,
    MilestonePermissions,
    ensure_role_grants,
    evaluate_permissions,
    is_allowed,
)
from milestone_escrow.services.milestone_transitions import (
    LedgerCall,
    Transition,
    ensure_legal,
    get_transition,
    is_replay,
    plan_state,
    status_path,
)
from milestone_escrow.utils.datetime_utils import ensure_utc, now_utc

logger = setup_logger(__name__)

# Roles that may read any project's milestones without being on the project.
PLATFORM_READ_ROLES = {UserRole.SUPER_ADMIN, UserRole.UNIVERSITY_ADMIN, UserRole.SUPERVISOR}


def ensure_can_view(actor: ActorContext, project: Project) -> None:
    if actor.role in PLATFORM_READ_ROLES:
        return
    if (
        project.is_owner(actor.user_id)
        or project.is_assignee(actor.user_id)
        or project.is_supervisor(actor.user_id)
    ):
        return
    raise PermissionDenied("view", actor.role.value if actor.role else None)


class MilestoneLockRegistry:
    """One asyncio.Lock per milestone id, dropped when nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._users: dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, milestone_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(milestone_id, asyncio.Lock())
        self._users[milestone_id] = self._users.get(milestone_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[milestone_id] -= 1
            if self._users[milestone_id] == 0:
                del self._users[milestone_id]
                self._locks.pop(milestone_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class MilestoneService:
    """Milestone lifecycle commands."""

    def __init__(
        self,
        milestone_repo: IMilestoneRepository,
        project_repo: IProjectRepository,
        escrow_ledger: IEscrowLedger,
        dispatcher: INotificationDispatcher,
        locks: Optional[MilestoneLockRegistry] = None,
    ):
        self._repo = milestone_repo
        self._project_repo = project_repo
        self._ledger = escrow_ledger
        self._dispatcher = dispatcher
        self._locks = locks or MilestoneLockRegistry()
        self._pending_dispatches: set[asyncio.Task] = set()

    # ===========================================
    # Lookups
    # ===========================================

    async def _get_project(self, project_id: UUID) -> Project:
        project = await self._project_repo.get(project_id)
        if not project:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def _load(self, milestone_id: UUID) -> tuple[Milestone, Project]:
        milestone = await self._repo.get_by_id(milestone_id)
        if not milestone:
            raise NotFoundError(f"Milestone {milestone_id} not found")
        project = await self._get_project(milestone.project_id)
        return milestone, project

    @staticmethod
    def _relations(actor: ActorContext, project: Project) -> tuple[bool, bool, bool]:
        return (
            project.is_owner(actor.user_id),
            project.is_assignee(actor.user_id),
            project.is_supervisor(actor.user_id),
        )

    async def get_milestone(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        milestone, project = await self._load(milestone_id)
        ensure_can_view(actor, project)
        return milestone

    async def list_milestones(self, actor: ActorContext, project_id: UUID) -> list[Milestone]:
        project = await self._get_project(project_id)
        ensure_can_view(actor, project)
        return await self._repo.list_by_project(project_id)

    async def get_permissions(self, actor: ActorContext, milestone_id: UUID) -> MilestonePermissions:
        milestone, project = await self._load(milestone_id)
        ensure_can_view(actor, project)
        is_owner, is_assignee, is_supervisor = self._relations(actor, project)
        return evaluate_permissions(
            actor.role, is_owner, is_assignee, milestone.status, milestone.supervisor_gate,
            is_supervisor=is_supervisor,
        )

    # ===========================================
    # Terms: propose / edit / delete
    # ===========================================

    async def propose_milestone(self, actor: ActorContext, data: MilestoneCreate) -> Milestone:
        project = await self._get_project(data.project_id)
        is_owner, is_assignee, is_supervisor = self._relations(actor, project)
        ensure_role_grants(actor.role, MilestoneAction.ADD, is_owner, is_assignee, is_supervisor)

        currency = data.currency or get_settings().DEFAULT_CURRENCY
        status = MilestoneStatus.DRAFT if data.draft else MilestoneStatus.PROPOSED
        milestone = await self._repo.create(actor.user_id, data, currency=currency, status=status)
        logger.info(
            "Milestone %s proposed on project %s by %s (%s %s)",
            milestone.id, project.id, actor.user_id, milestone.amount, milestone.currency,
        )
        return milestone

    async def edit_milestone(
        self, actor: ActorContext, milestone_id: UUID, update: MilestoneUpdate
    ) -> Milestone:
        async with self._locks.hold(milestone_id):
            milestone, project = await self._load(milestone_id)
            is_owner, is_assignee, is_supervisor = self._relations(actor, project)
            ensure_role_grants(actor.role, MilestoneAction.EDIT, is_owner, is_assignee, is_supervisor)

            fields: dict[str, Any] = {
                k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None
            }
            if milestone.status not in EDITABLE_STATUSES:
                raise EditNotAllowed(milestone.status.value, sorted(fields))

            if "due_date" in fields:
                fields["due_date"] = ensure_utc(fields["due_date"])
                if fields["due_date"].date() < now_utc().date():
                    raise ValidationError(
                        "due_date must not be in the past", details={"field": "due_date"}
                    )

            money_changes = [
                name for name in ("amount", "currency")
                if name in fields and fields[name] != getattr(milestone, name)
            ]
            if money_changes and milestone.status not in AMOUNT_EDITABLE_STATUSES:
                raise EditNotAllowed(milestone.status.value, money_changes)
            if money_changes and await self._escrow_held(milestone):
                raise EditNotAllowed(milestone.status.value, money_changes)

            if not fields:
                return milestone

            updated = await self._repo.update_fields(milestone.id, milestone.version, fields)
            logger.info("Milestone %s edited by %s: %s", milestone.id, actor.user_id, sorted(fields))
            return updated

    async def delete_milestone(self, actor: ActorContext, milestone_id: UUID) -> None:
        async with self._locks.hold(milestone_id):
            milestone, project = await self._load(milestone_id)
            is_owner, is_assignee, is_supervisor = self._relations(actor, project)
            ensure_role_grants(actor.role, MilestoneAction.DELETE, is_owner, is_assignee, is_supervisor)

            # Funded milestones are financial records and are kept
            if (
                milestone.status not in DELETABLE_STATUSES
                or milestone.escrow_status != EscrowStatus.PENDING
                or await self._escrow_held(milestone)
            ):
                raise InvalidTransition(milestone.status.value, MilestoneAction.DELETE.value)

            await self._repo.delete(milestone.id)
            logger.info("Milestone %s deleted by %s", milestone.id, actor.user_id)

    async def _escrow_held(self, milestone: Milestone) -> bool:
        """True when the ledger holds funds the milestone row does not record yet."""
        if milestone.escrow_status != EscrowStatus.PENDING:
            return False
        record = await self._ledger.get(milestone.id)
        if record is None:
            return False
        logger.warning(
            "Milestone %s is %s but escrow %s already holds %s %s; fund again to record it",
            milestone.id, milestone.status.value, record.reference,
            record.amount_held, record.currency,
        )
        return True

    # ===========================================
    # Transitions
    # ===========================================

    async def accept_milestone(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.ACCEPT)

    async def finalize_milestone(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.FINALIZE)

    async def fund_milestone(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.FUND_ESCROW)

    async def begin_work(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.BEGIN_WORK)

    async def submit_work(
        self, actor: ActorContext, milestone_id: UUID, notes: Optional[str] = None
    ) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.SUBMIT, notes=notes)

    async def supervisor_approve(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.SUPERVISOR_APPROVE)

    async def supervisor_reject(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.SUPERVISOR_REJECT)

    async def approve_and_release(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.APPROVE_AND_RELEASE)

    async def disapprove(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.DISAPPROVE)

    async def request_changes(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.REQUEST_CHANGES)

    async def mark_complete(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.MARK_COMPLETE)

    async def unmark_complete(self, actor: ActorContext, milestone_id: UUID) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.UNMARK_COMPLETE)

    async def raise_dispute(
        self, actor: ActorContext, milestone_id: UUID, reason: Optional[str] = None
    ) -> Milestone:
        return await self._transition(actor, milestone_id, MilestoneAction.DISPUTE, reason=reason)

    async def _transition(
        self,
        actor: ActorContext,
        milestone_id: UUID,
        action: MilestoneAction,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Milestone:
        transition = get_transition(action)

        async with self._locks.hold(milestone_id):
            milestone, project = await self._load(milestone_id)
            is_owner, is_assignee, is_supervisor = self._relations(actor, project)
            ensure_role_grants(actor.role, action, is_owner, is_assignee, is_supervisor)

            if is_replay(milestone, transition):
                logger.info(
                    "Milestone %s already %s, ignoring repeated %s",
                    milestone.id, milestone.status.value, action.value,
                )
                return milestone

            if transition.requires_gate and not milestone.supervisor_gate:
                raise GateNotSatisfied(milestone.id)

            ensure_legal(milestone, transition)
            if not is_allowed(
                actor.role, action, is_owner, is_assignee,
                milestone.status, milestone.supervisor_gate, is_supervisor,
            ):
                raise InvalidTransition(milestone.status.value, action.value)

            state = plan_state(milestone, transition, submission_notes=notes, dispute_reason=reason)
            await self._call_ledger(milestone, transition)

            try:
                updated = await self._repo.save_state(milestone.id, milestone.version, state)
            except ConcurrentModificationError:
                logger.warning(
                    "Milestone %s changed during %s; ledger calls are idempotent, safe to retry",
                    milestone.id, action.value,
                )
                raise

        logger.info(
            "Milestone %s: %s -> %s by %s (%s)",
            milestone.id, milestone.status.value, updated.status.value,
            actor.user_id, actor.role.value if actor.role else "no role",
        )
        self._schedule_dispatch([
            MilestoneTransitionEvent(
                milestone_id=updated.id,
                project_id=updated.project_id,
                milestone_title=updated.title,
                action=action,
                old_status=old_status,
                new_status=new_status,
                actor_id=actor.user_id,
                actor_role=actor.role,
            )
            for old_status, new_status in status_path(milestone.status, transition)
        ])
        return updated

    async def _call_ledger(self, milestone: Milestone, transition: Transition) -> None:
        if transition.ledger == LedgerCall.FUND:
            try:
                receipt = await self._ledger.fund(milestone.id, milestone.amount, milestone.currency)
            except Exception as exc:
                logger.error("Escrow funding failed for milestone %s: %s", milestone.id, exc)
                raise EscrowOperationFailed(milestone.id, "fund", str(exc)) from exc
            logger.info("Milestone %s funded, escrow reference %s", milestone.id, receipt.reference)

        elif transition.ledger == LedgerCall.RELEASE:
            if milestone.escrow_status == EscrowStatus.PENDING:
                raise EscrowOperationFailed(milestone.id, "release", "escrow was never funded")
            if milestone.escrow_status == EscrowStatus.RELEASED:
                # Released in an earlier cycle and then disapproved; funds already moved.
                logger.info("Escrow for milestone %s already released, not calling ledger", milestone.id)
                return
            try:
                receipt = await self._ledger.release(milestone.id)
            except Exception as exc:
                logger.error("Escrow release failed for milestone %s: %s", milestone.id, exc)
                raise EscrowOperationFailed(milestone.id, "release", str(exc)) from exc
            logger.info("Milestone %s released, escrow reference %s", milestone.id, receipt.reference)

    # ===========================================
    # Notifications
    # ===========================================

    def _schedule_dispatch(self, events: list[MilestoneTransitionEvent]) -> None:
        task = asyncio.create_task(self._dispatch_all(events))
        self._pending_dispatches.add(task)
        task.add_done_callback(self._pending_dispatches.discard)

    async def _dispatch_all(self, events: list[MilestoneTransitionEvent]) -> None:
        for event in events:
            try:
                await self._dispatcher.dispatch(event)
            except Exception:
                logger.exception(
                    "Notification dispatch failed for milestone %s (%s)",
                    event.milestone_id, event.new_status.value,
                )

    async def wait_for_notifications(self) -> None:
        """Wait until every scheduled dispatch has finished."""
        while self._pending_dispatches:
            await asyncio.gather(*list(self._pending_dispatches))
