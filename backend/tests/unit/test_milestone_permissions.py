"""
Unit tests for the role/action matrix and permission evaluation.
"""

from itertools import product

import pytest

from milestone_escrow.core.exceptions import PermissionDenied
from milestone_escrow.models.enums import MilestoneAction, MilestoneStatus, UserRole
from milestone_escrow.services.milestone_permissions import (
    EDITABLE_STATUSES,
    PERMISSION_FLAGS,
    ROLE_ACTION_MATRIX,
    ensure_role_grants,
    evaluate_permissions,
    is_allowed,
    role_grants,
    rule_for,
)

ROLES = [*UserRole, None]
RELATIONS = [(False, False, False), (True, False, False), (False, True, False), (False, False, True)]


def test_every_action_has_a_permission_flag():
    assert set(PERMISSION_FLAGS) == set(MilestoneAction)


def test_no_role_has_no_permissions():
    perms = evaluate_permissions(None, True, True, MilestoneStatus.PROPOSED, True)
    assert not any(perms.model_dump().values())


@pytest.mark.parametrize(
    "role, is_owner, is_assignee, is_supervisor, status, gate",
    list(product(ROLES, [True, False], [True, False], [True, False], list(MilestoneStatus), [True, False])),
)
def test_flags_are_role_and_status_conjunction(role, is_owner, is_assignee, is_supervisor, status, gate):
    """A flag is set only when the role rule, the relation, the status and the gate all hold."""
    perms = evaluate_permissions(role, is_owner, is_assignee, status, gate, is_supervisor).model_dump()
    for action, flag in PERMISSION_FLAGS.items():
        rule = rule_for(role, action)
        expected = (
            rule is not None
            and rule.relation_holds(is_owner, is_assignee, is_supervisor)
            and status in rule.statuses
            and (gate or not rule.requires_gate)
        )
        assert perms[flag] is expected, (role, action, status, gate)


@pytest.mark.parametrize("role", ROLES)
@pytest.mark.parametrize("status", list(MilestoneStatus))
def test_release_never_allowed_without_gate(role, status):
    for is_owner, is_assignee, is_supervisor in RELATIONS:
        perms = evaluate_permissions(role, is_owner, is_assignee, status, False, is_supervisor)
        assert perms.can_approve_and_release is False


def test_owner_partner_can_release_after_supervisor_approval():
    perms = evaluate_permissions(UserRole.PARTNER, True, False, MilestoneStatus.PARTNER_REVIEW, True)
    assert perms.can_approve_and_release is True
    assert perms.can_request_changes is True
    assert perms.can_fund_escrow is False


def test_partner_without_ownership_gets_nothing():
    perms = evaluate_permissions(UserRole.PARTNER, False, False, MilestoneStatus.PARTNER_REVIEW, True)
    assert not any(perms.model_dump().values())


def test_student_assignee_flags_follow_status():
    funded = evaluate_permissions(UserRole.STUDENT, False, True, MilestoneStatus.FUNDED, False)
    assert funded.can_begin_work is True
    assert funded.can_submit is False

    finalized = evaluate_permissions(UserRole.STUDENT, False, True, MilestoneStatus.FINALIZED, False)
    assert finalized.can_submit is True

    in_progress = evaluate_permissions(UserRole.STUDENT, False, True, MilestoneStatus.IN_PROGRESS, False)
    assert in_progress.can_submit is True
    assert in_progress.can_dispute is True
    assert in_progress.can_approve_and_release is False


def test_student_not_assigned_cannot_submit():
    perms = evaluate_permissions(UserRole.STUDENT, False, False, MilestoneStatus.IN_PROGRESS, False)
    assert perms.can_submit is False


def test_supervisor_review_flags():
    perms = evaluate_permissions(
        UserRole.SUPERVISOR, False, False, MilestoneStatus.SUPERVISOR_REVIEW, False, is_supervisor=True
    )
    assert perms.can_supervisor_approve is True
    assert perms.can_supervisor_reject is True
    assert perms.can_approve_and_release is False


def test_supervisor_not_on_project_cannot_review():
    perms = evaluate_permissions(UserRole.SUPERVISOR, False, False, MilestoneStatus.SUPERVISOR_REVIEW, False)
    assert not any(perms.model_dump().values())

    with pytest.raises(PermissionDenied):
        ensure_role_grants(UserRole.SUPERVISOR, MilestoneAction.SUPERVISOR_APPROVE, False, False)
    ensure_role_grants(
        UserRole.SUPERVISOR, MilestoneAction.SUPERVISOR_APPROVE, False, False, is_supervisor=True
    )


def test_super_admin_dispute_any_non_terminal_status():
    for status in MilestoneStatus:
        perms = evaluate_permissions(UserRole.SUPER_ADMIN, False, False, status, False)
        terminal = status in (MilestoneStatus.COMPLETED, MilestoneStatus.DISPUTED)
        assert perms.can_dispute is (not terminal)


def test_edit_allow_list_is_explicit():
    assert MilestoneStatus.IN_PROGRESS not in EDITABLE_STATUSES
    assert MilestoneStatus.APPROVED not in EDITABLE_STATUSES
    assert ROLE_ACTION_MATRIX[UserRole.PARTNER][MilestoneAction.EDIT].statuses == EDITABLE_STATUSES


def test_role_grants_ignores_status():
    assert role_grants(UserRole.PARTNER, MilestoneAction.FUND_ESCROW, True, False) is True
    assert is_allowed(
        UserRole.PARTNER, MilestoneAction.FUND_ESCROW, True, False, MilestoneStatus.PROPOSED, False
    ) is False


def test_ensure_role_grants_raises_for_assignee_release():
    with pytest.raises(PermissionDenied) as exc_info:
        ensure_role_grants(UserRole.STUDENT, MilestoneAction.APPROVE_AND_RELEASE, False, True)
    assert exc_info.value.action == "approve_and_release"
    assert exc_info.value.role == "student"
