"""
Enum definitions for the application.

These enums are used across models and provide type-safe status/role values.
"""

from enum import Enum


class MilestoneStatus(str, Enum):
    """Milestone lifecycle status."""

    DRAFT = "DRAFT"
    PROPOSED = "PROPOSED"
    ACCEPTED = "ACCEPTED"
    FINALIZED = "FINALIZED"
    FUNDED = "FUNDED"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    SUPERVISOR_REVIEW = "SUPERVISOR_REVIEW"
    PARTNER_REVIEW = "PARTNER_REVIEW"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    APPROVED = "APPROVED"  # legacy, nothing transitions into it
    RELEASED = "RELEASED"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"


class EscrowStatus(str, Enum):
    """State of the funds held for a milestone."""

    PENDING = "PENDING"
    FUNDED = "FUNDED"
    RELEASED = "RELEASED"


class UserRole(str, Enum):
    """
    Platform role of the acting user.

    PARTNER = organization that owns and funds projects
    STUDENT = participant assigned to do the work
    SUPERVISOR = reviewer who signs off submitted work
    UNIVERSITY_ADMIN = oversight role
    SUPER_ADMIN = platform operator
    """

    PARTNER = "partner"
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    UNIVERSITY_ADMIN = "university-admin"
    SUPER_ADMIN = "super-admin"


class MilestoneAction(str, Enum):
    """Actions an actor can request on a milestone."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    ACCEPT = "accept"
    FINALIZE = "finalize"
    FUND_ESCROW = "fund_escrow"
    BEGIN_WORK = "begin_work"
    SUBMIT = "submit"
    SUPERVISOR_APPROVE = "supervisor_approve"
    SUPERVISOR_REJECT = "supervisor_reject"
    APPROVE_AND_RELEASE = "approve_and_release"
    DISAPPROVE = "disapprove"
    REQUEST_CHANGES = "request_changes"
    MARK_COMPLETE = "mark_complete"
    UNMARK_COMPLETE = "unmark_complete"
    DISPUTE = "dispute"
