"""
Milestone API endpoints.

Proposal, terms editing and the escrow-backed workflow. All rules live in
MilestoneService; this module only maps its errors to HTTP.
"""

from typing import Awaitable, Optional, TypeVar
from uuid import UUID

from fastapi import APIRouter, Query, status

from milestone_escrow.api.deps import Actor, MilestoneSvc
from milestone_escrow.api.errors import to_http_exception
from milestone_escrow.core.exceptions import MilestoneEscrowError
from milestone_escrow.models.milestone import (
    DisputeRequest,
    Milestone,
    MilestoneCreate,
    MilestoneUpdate,
    SubmitWorkRequest,
)
from milestone_escrow.services.milestone_permissions import MilestonePermissions

router = APIRouter(prefix="/milestones", tags=["milestones"])

T = TypeVar("T")


async def _call(awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except MilestoneEscrowError as e:
        raise to_http_exception(e)


# ===========================================
# Terms
# ===========================================


@router.post("", response_model=Milestone, status_code=status.HTTP_201_CREATED)
async def propose_milestone(
    milestone: MilestoneCreate,
    actor: Actor,
    service: MilestoneSvc,
) -> Milestone:
    """Propose a new milestone (or save a draft)."""
    return await _call(service.propose_milestone(actor, milestone))


@router.get("", response_model=list[Milestone])
async def list_milestones(
    actor: Actor,
    service: MilestoneSvc,
    project_id: UUID = Query(..., description="Project whose milestones to list"),
) -> list[Milestone]:
    """List milestones of a project, oldest first."""
    return await _call(service.list_milestones(actor, project_id))


@router.get("/{milestone_id}", response_model=Milestone)
async def get_milestone(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    """Get a milestone by ID."""
    return await _call(service.get_milestone(actor, milestone_id))


@router.patch("/{milestone_id}", response_model=Milestone)
async def edit_milestone(
    milestone_id: UUID,
    update: MilestoneUpdate,
    actor: Actor,
    service: MilestoneSvc,
) -> Milestone:
    """Edit milestone terms. Amount and currency are locked once funded."""
    return await _call(service.edit_milestone(actor, milestone_id, update))


@router.delete("/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_milestone(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> None:
    """Delete a milestone that has not been funded."""
    await _call(service.delete_milestone(actor, milestone_id))


@router.get("/{milestone_id}/permissions", response_model=MilestonePermissions)
async def get_permissions(
    milestone_id: UUID,
    actor: Actor,
    service: MilestoneSvc,
) -> MilestonePermissions:
    """What the current user may do to this milestone right now."""
    return await _call(service.get_permissions(actor, milestone_id))


# ===========================================
# Workflow
# ===========================================


@router.post("/{milestone_id}/accept", response_model=Milestone)
async def accept_milestone(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.accept_milestone(actor, milestone_id))


@router.post("/{milestone_id}/finalize", response_model=Milestone)
async def finalize_milestone(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.finalize_milestone(actor, milestone_id))


@router.post("/{milestone_id}/fund", response_model=Milestone)
async def fund_milestone(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    """Fund escrow for a finalized milestone. Repeating the call does not fund twice."""
    return await _call(service.fund_milestone(actor, milestone_id))


@router.post("/{milestone_id}/begin", response_model=Milestone)
async def begin_work(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.begin_work(actor, milestone_id))


@router.post("/{milestone_id}/submit", response_model=Milestone)
async def submit_work(
    milestone_id: UUID,
    actor: Actor,
    service: MilestoneSvc,
    body: Optional[SubmitWorkRequest] = None,
) -> Milestone:
    """Submit work for supervisor review."""
    notes = body.notes if body else None
    return await _call(service.submit_work(actor, milestone_id, notes=notes))


@router.post("/{milestone_id}/supervisor-approve", response_model=Milestone)
async def supervisor_approve(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.supervisor_approve(actor, milestone_id))


@router.post("/{milestone_id}/supervisor-reject", response_model=Milestone)
async def supervisor_reject(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.supervisor_reject(actor, milestone_id))


@router.post("/{milestone_id}/approve-release", response_model=Milestone)
async def approve_and_release(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    """Approve the work and release escrow. Requires supervisor approval first."""
    return await _call(service.approve_and_release(actor, milestone_id))


@router.post("/{milestone_id}/disapprove", response_model=Milestone)
async def disapprove(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.disapprove(actor, milestone_id))


@router.post("/{milestone_id}/request-changes", response_model=Milestone)
async def request_changes(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.request_changes(actor, milestone_id))


@router.post("/{milestone_id}/complete", response_model=Milestone)
async def mark_complete(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.mark_complete(actor, milestone_id))


@router.post("/{milestone_id}/uncomplete", response_model=Milestone)
async def unmark_complete(milestone_id: UUID, actor: Actor, service: MilestoneSvc) -> Milestone:
    return await _call(service.unmark_complete(actor, milestone_id))


@router.post("/{milestone_id}/dispute", response_model=Milestone)
async def raise_dispute(
    milestone_id: UUID,
    actor: Actor,
    service: MilestoneSvc,
    body: Optional[DisputeRequest] = None,
) -> Milestone:
    """Raise a dispute. Terminal; resolution happens outside this service."""
    reason = body.reason if body else None
    return await _call(service.raise_dispute(actor, milestone_id, reason=reason))
