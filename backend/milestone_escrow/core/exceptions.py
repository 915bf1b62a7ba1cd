"""
Custom exceptions for the application.

Services raise these; the API layer maps them to HTTP status codes.
"""

from typing import Any, Optional


class MilestoneEscrowError(Exception):
    """Base exception for milestone_escrow."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(MilestoneEscrowError):
    """Resource not found."""

    pass


class ValidationError(MilestoneEscrowError):
    """Validation error."""

    pass


class AuthenticationError(MilestoneEscrowError):
    """Authentication failed."""

    pass


class AuthorizationError(MilestoneEscrowError):
    """Authorization failed."""

    pass


class PermissionDenied(AuthorizationError):
    """The actor's role or project relationship never grants the action."""

    def __init__(self, action: str, role: Optional[str] = None):
        super().__init__(
            f"Role {role or 'unknown'} is not allowed to {action} this milestone",
            details={"action": action, "role": role},
        )
        self.action = action
        self.role = role


class InfrastructureError(MilestoneEscrowError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class EscrowLedgerError(InfrastructureError):
    """Raised by escrow ledger adapters when a ledger call fails."""

    pass


class EscrowOperationFailed(InfrastructureError):
    """Funding or release failed; the milestone status was left unchanged."""

    def __init__(self, milestone_id: Any, operation: str, reason: str):
        super().__init__(
            f"Escrow {operation} failed for milestone {milestone_id}: {reason}",
            details={"milestone_id": str(milestone_id), "operation": operation},
        )
        self.milestone_id = milestone_id
        self.operation = operation


class BusinessLogicError(MilestoneEscrowError):
    """Business logic constraint violation."""

    pass


class InvalidTransition(BusinessLogicError):
    """The action is not legal from the milestone's current status."""

    def __init__(self, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} a milestone in status {current_status}",
            details={"current_status": current_status, "action": action},
        )
        self.current_status = current_status
        self.action = action


class GateNotSatisfied(BusinessLogicError):
    """Release attempted before the supervisor approved the work."""

    def __init__(self, milestone_id: Any):
        super().__init__(
            f"Supervisor approval required before releasing escrow for milestone {milestone_id}",
            details={"milestone_id": str(milestone_id)},
        )
        self.milestone_id = milestone_id


class EditNotAllowed(BusinessLogicError):
    """Edit attempted outside the editable status window."""

    def __init__(self, current_status: str, fields: Optional[list[str]] = None):
        super().__init__(
            f"Milestone in status {current_status} cannot be edited",
            details={"current_status": current_status, "fields": fields or []},
        )
        self.current_status = current_status
        self.fields = fields or []


class ConcurrentModificationError(BusinessLogicError):
    """The stored milestone changed between read and write."""

    pass
