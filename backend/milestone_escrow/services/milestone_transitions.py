"""
Milestone status model and transition table.

Every workflow action maps to one Transition: the statuses it may start
from, the status it lands in, what it does to the supervisor gate and
which escrow ledger call (if any) it needs. Nothing here touches storage;
MilestoneService applies the planned state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from milestone_escrow.core.exceptions import InvalidTransition
from milestone_escrow.models.enums import EscrowStatus, MilestoneAction, MilestoneStatus
from milestone_escrow.models.milestone import Milestone, MilestoneState
from milestone_escrow.services.milestone_permissions import (
    FINALIZABLE_STATUSES,
    NON_TERMINAL_STATUSES,
    SUBMITTABLE_STATUSES,
)


class LedgerCall(str, Enum):
    FUND = "fund"
    RELEASE = "release"


class GateEffect(str, Enum):
    KEEP = "keep"
    SET = "set"
    CLEAR = "clear"


@dataclass(frozen=True)
class Transition:
    action: MilestoneAction
    sources: frozenset[MilestoneStatus]
    target: MilestoneStatus
    gate: GateEffect = GateEffect.KEEP
    ledger: Optional[LedgerCall] = None
    # Intermediate status passed through on the way to target (emitted as its own event)
    via: Optional[MilestoneStatus] = None
    requires_gate: bool = False
    # A replay that finds the milestone already in target is a success no-op
    idempotent: bool = True


def _t(action, sources, target, **kwargs) -> Transition:
    return Transition(action=action, sources=frozenset(sources), target=target, **kwargs)


A = MilestoneAction
S = MilestoneStatus

TRANSITIONS: dict[MilestoneAction, Transition] = {
    t.action: t
    for t in (
        _t(A.ACCEPT, {S.DRAFT, S.PROPOSED}, S.ACCEPTED),
        _t(A.FINALIZE, FINALIZABLE_STATUSES, S.FINALIZED),
        _t(A.FUND_ESCROW, {S.FINALIZED}, S.FUNDED, ledger=LedgerCall.FUND),
        _t(A.BEGIN_WORK, {S.FUNDED}, S.IN_PROGRESS),
        _t(A.SUBMIT, SUBMITTABLE_STATUSES, S.SUPERVISOR_REVIEW, via=S.SUBMITTED),
        _t(A.SUPERVISOR_APPROVE, {S.SUPERVISOR_REVIEW}, S.PARTNER_REVIEW, gate=GateEffect.SET),
        # CHANGES_REQUESTED, PARTNER_REVIEW and RELEASED are each reachable by two actions,
        # so finding the milestone there does not show that this action put it there
        _t(
            A.SUPERVISOR_REJECT,
            {S.SUPERVISOR_REVIEW},
            S.CHANGES_REQUESTED,
            gate=GateEffect.CLEAR,
            idempotent=False,
        ),
        _t(
            A.APPROVE_AND_RELEASE,
            {S.PARTNER_REVIEW},
            S.RELEASED,
            ledger=LedgerCall.RELEASE,
            requires_gate=True,
        ),
        _t(
            A.REQUEST_CHANGES,
            {S.PARTNER_REVIEW},
            S.CHANGES_REQUESTED,
            gate=GateEffect.CLEAR,
            idempotent=False,
        ),
        _t(A.DISAPPROVE, {S.RELEASED}, S.PARTNER_REVIEW, gate=GateEffect.CLEAR, idempotent=False),
        _t(A.MARK_COMPLETE, {S.RELEASED}, S.COMPLETED),
        _t(A.UNMARK_COMPLETE, {S.COMPLETED}, S.RELEASED, idempotent=False),
        _t(A.DISPUTE, NON_TERMINAL_STATUSES, S.DISPUTED, gate=GateEffect.CLEAR),
    )
}


def get_transition(action: MilestoneAction) -> Transition:
    try:
        return TRANSITIONS[action]
    except KeyError:
        raise ValueError(f"{action.value} is not a status transition") from None


def is_replay(milestone: Milestone, transition: Transition) -> bool:
    """
    True when the milestone already shows the effect of this transition.

    Release stays replayable: every path into RELEASED passes through a
    release, so the funds have moved either way.
    """
    if not transition.idempotent or milestone.status != transition.target:
        return False
    if transition.gate == GateEffect.SET:
        return milestone.supervisor_gate
    return True


def ensure_legal(milestone: Milestone, transition: Transition) -> None:
    if milestone.status not in transition.sources:
        raise InvalidTransition(milestone.status.value, transition.action.value)


def plan_state(
    milestone: Milestone,
    transition: Transition,
    submission_notes: Optional[str] = None,
    dispute_reason: Optional[str] = None,
) -> MilestoneState:
    """Compute the state a legal transition produces."""
    ensure_legal(milestone, transition)

    gate = milestone.supervisor_gate
    if transition.gate == GateEffect.SET:
        gate = True
    elif transition.gate == GateEffect.CLEAR:
        gate = False

    escrow_status = milestone.escrow_status
    if transition.ledger == LedgerCall.FUND:
        escrow_status = EscrowStatus.FUNDED
    elif transition.ledger == LedgerCall.RELEASE:
        escrow_status = EscrowStatus.RELEASED

    notes = milestone.submission_notes
    if transition.action == MilestoneAction.SUBMIT and submission_notes is not None:
        notes = submission_notes

    reason = milestone.dispute_reason
    if transition.action == MilestoneAction.DISPUTE:
        reason = dispute_reason

    return MilestoneState(
        status=transition.target,
        supervisor_gate=gate,
        escrow_status=escrow_status,
        submission_notes=notes,
        dispute_reason=reason,
    )


def status_path(old_status: MilestoneStatus, transition: Transition) -> list[tuple[MilestoneStatus, MilestoneStatus]]:
    """The (old, new) pairs a transition walks through, one per emitted event."""
    if transition.via is None:
        return [(old_status, transition.target)]
    return [(old_status, transition.via), (transition.via, transition.target)]
