from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from milestone_escrow.core.exceptions import PermissionDenied
from milestone_escrow.models.enums import MilestoneAction, MilestoneStatus, UserRole


class Relation(str, Enum):
    """Relationship to the project an actor needs for a rule to apply."""

    NONE = "none"
    OWNER = "owner"
    ASSIGNEE = "assignee"
    SUPERVISOR = "supervisor"


ALL_STATUSES = frozenset(MilestoneStatus)
TERMINAL_STATUSES = frozenset({MilestoneStatus.COMPLETED, MilestoneStatus.DISPUTED})
NON_TERMINAL_STATUSES = ALL_STATUSES - TERMINAL_STATUSES

# Explicit allow-lists. A new status is not editable or deletable until added here.
EDITABLE_STATUSES = frozenset({
    MilestoneStatus.DRAFT,
    MilestoneStatus.PROPOSED,
    MilestoneStatus.ACCEPTED,
    MilestoneStatus.FINALIZED,
    MilestoneStatus.FUNDED,
})
AMOUNT_EDITABLE_STATUSES = EDITABLE_STATUSES - {MilestoneStatus.FUNDED}
DELETABLE_STATUSES = AMOUNT_EDITABLE_STATUSES
ACTIVE_WORK_STATUSES = frozenset({
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.SUBMITTED,
    MilestoneStatus.SUPERVISOR_REVIEW,
    MilestoneStatus.PARTNER_REVIEW,
    MilestoneStatus.CHANGES_REQUESTED,
})
ACCEPTABLE_STATUSES = frozenset({MilestoneStatus.DRAFT, MilestoneStatus.PROPOSED})
FINALIZABLE_STATUSES = ACCEPTABLE_STATUSES | {MilestoneStatus.ACCEPTED}
SUBMITTABLE_STATUSES = frozenset({
    MilestoneStatus.FINALIZED,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.CHANGES_REQUESTED,
})


@dataclass(frozen=True)
class ActionRule:
    statuses: frozenset[MilestoneStatus]
    relation: Relation = Relation.NONE
    requires_gate: bool = False

    def relation_holds(
        self, is_project_owner: bool, is_assignee: bool, is_supervisor: bool = False
    ) -> bool:
        if self.relation == Relation.OWNER:
            return is_project_owner
        if self.relation == Relation.ASSIGNEE:
            return is_assignee
        if self.relation == Relation.SUPERVISOR:
            return is_supervisor
        return True


def _owner(statuses, requires_gate: bool = False) -> ActionRule:
    return ActionRule(frozenset(statuses), Relation.OWNER, requires_gate)


def _assignee(statuses) -> ActionRule:
    return ActionRule(frozenset(statuses), Relation.ASSIGNEE)


def _supervisor(statuses) -> ActionRule:
    return ActionRule(frozenset(statuses), Relation.SUPERVISOR)


def _anyone(statuses, requires_gate: bool = False) -> ActionRule:
    return ActionRule(frozenset(statuses), Relation.NONE, requires_gate)


A = MilestoneAction
S = MilestoneStatus

ROLE_ACTION_MATRIX: dict[UserRole, dict[MilestoneAction, ActionRule]] = {
    UserRole.PARTNER: {
        A.ADD: _owner(ALL_STATUSES),
        A.EDIT: _owner(EDITABLE_STATUSES),
        A.DELETE: _owner(DELETABLE_STATUSES),
        A.ACCEPT: _owner(ACCEPTABLE_STATUSES),
        A.FINALIZE: _owner(FINALIZABLE_STATUSES),
        A.FUND_ESCROW: _owner({S.FINALIZED}),
        A.APPROVE_AND_RELEASE: _owner({S.PARTNER_REVIEW}, requires_gate=True),
        A.DISAPPROVE: _owner({S.RELEASED}),
        A.REQUEST_CHANGES: _owner({S.PARTNER_REVIEW}),
        A.MARK_COMPLETE: _owner({S.RELEASED}),
        A.UNMARK_COMPLETE: _owner({S.COMPLETED}),
        A.DISPUTE: _owner(ACTIVE_WORK_STATUSES),
    },
    UserRole.STUDENT: {
        A.ACCEPT: _assignee(ACCEPTABLE_STATUSES),
        A.BEGIN_WORK: _assignee({S.FUNDED}),
        A.SUBMIT: _assignee(SUBMITTABLE_STATUSES),
        A.DISPUTE: _assignee(ACTIVE_WORK_STATUSES),
    },
    UserRole.SUPERVISOR: {
        A.SUPERVISOR_APPROVE: _supervisor({S.SUPERVISOR_REVIEW}),
        A.SUPERVISOR_REJECT: _supervisor({S.SUPERVISOR_REVIEW}),
        A.DISPUTE: _supervisor(ACTIVE_WORK_STATUSES),
    },
    UserRole.UNIVERSITY_ADMIN: {
        A.DISPUTE: _anyone(ACTIVE_WORK_STATUSES),
    },
    UserRole.SUPER_ADMIN: {
        A.ADD: _anyone(ALL_STATUSES),
        A.EDIT: _anyone(EDITABLE_STATUSES),
        A.DELETE: _anyone(DELETABLE_STATUSES),
        A.FINALIZE: _anyone(FINALIZABLE_STATUSES),
        A.FUND_ESCROW: _anyone({S.FINALIZED}),
        A.APPROVE_AND_RELEASE: _anyone({S.PARTNER_REVIEW}, requires_gate=True),
        A.DISAPPROVE: _anyone({S.RELEASED}),
        A.REQUEST_CHANGES: _anyone({S.PARTNER_REVIEW}),
        A.MARK_COMPLETE: _anyone({S.RELEASED}),
        A.UNMARK_COMPLETE: _anyone({S.COMPLETED}),
        A.DISPUTE: _anyone(NON_TERMINAL_STATUSES),
    },
}


class MilestonePermissions(BaseModel):
    """What an actor may do to one milestone right now."""

    can_edit: bool = False
    can_add: bool = False
    can_delete: bool = False
    can_accept: bool = False
    can_finalize: bool = False
    can_fund_escrow: bool = False
    can_begin_work: bool = False
    can_submit: bool = False
    can_supervisor_approve: bool = False
    can_supervisor_reject: bool = False
    can_approve_and_release: bool = False
    can_disapprove: bool = False
    can_request_changes: bool = False
    can_dispute: bool = False
    can_mark_as_complete: bool = False
    can_unmark_as_complete: bool = False


PERMISSION_FLAGS: dict[MilestoneAction, str] = {
    MilestoneAction.EDIT: "can_edit",
    MilestoneAction.ADD: "can_add",
    MilestoneAction.DELETE: "can_delete",
    MilestoneAction.ACCEPT: "can_accept",
    MilestoneAction.FINALIZE: "can_finalize",
    MilestoneAction.FUND_ESCROW: "can_fund_escrow",
    MilestoneAction.BEGIN_WORK: "can_begin_work",
    MilestoneAction.SUBMIT: "can_submit",
    MilestoneAction.SUPERVISOR_APPROVE: "can_supervisor_approve",
    MilestoneAction.SUPERVISOR_REJECT: "can_supervisor_reject",
    MilestoneAction.APPROVE_AND_RELEASE: "can_approve_and_release",
    MilestoneAction.DISAPPROVE: "can_disapprove",
    MilestoneAction.REQUEST_CHANGES: "can_request_changes",
    MilestoneAction.DISPUTE: "can_dispute",
    MilestoneAction.MARK_COMPLETE: "can_mark_as_complete",
    MilestoneAction.UNMARK_COMPLETE: "can_unmark_as_complete",
}


def rule_for(role: Optional[UserRole], action: MilestoneAction) -> ActionRule | None:
    if role is None:
        return None
    return ROLE_ACTION_MATRIX.get(role, {}).get(action)


def role_grants(
    role: Optional[UserRole],
    action: MilestoneAction,
    is_project_owner: bool,
    is_assignee: bool,
    is_supervisor: bool = False,
) -> bool:
    """Role-level half of the check: the role has a rule and the relation holds."""
    rule = rule_for(role, action)
    return rule is not None and rule.relation_holds(is_project_owner, is_assignee, is_supervisor)


def is_allowed(
    role: Optional[UserRole],
    action: MilestoneAction,
    is_project_owner: bool,
    is_assignee: bool,
    status: MilestoneStatus,
    supervisor_gate: bool,
    is_supervisor: bool = False,
) -> bool:
    if not role_grants(role, action, is_project_owner, is_assignee, is_supervisor):
        return False
    rule = rule_for(role, action)
    if status not in rule.statuses:
        return False
    return supervisor_gate or not rule.requires_gate


def evaluate_permissions(
    role: Optional[UserRole],
    is_project_owner: bool,
    is_assignee: bool,
    status: MilestoneStatus,
    supervisor_gate: bool,
    is_supervisor: bool = False,
) -> MilestonePermissions:
    """
    Compute every permission flag for an actor on a milestone.

    Pure function of its arguments. A flag is set only when the role rule,
    the project relationship, the status precondition and (for release)
    the supervisor gate all hold. is_supervisor marks an actor listed as a
    supervisor on the project; supervisor review actions require it.
    """
    flags = {
        flag: is_allowed(
            role, action, is_project_owner, is_assignee, status, supervisor_gate, is_supervisor
        )
        for action, flag in PERMISSION_FLAGS.items()
    }
    return MilestonePermissions(**flags)


def ensure_role_grants(
    role: Optional[UserRole],
    action: MilestoneAction,
    is_project_owner: bool,
    is_assignee: bool,
    is_supervisor: bool = False,
) -> None:
    if not role_grants(role, action, is_project_owner, is_assignee, is_supervisor):
        raise PermissionDenied(action.value, role.value if role else None)
