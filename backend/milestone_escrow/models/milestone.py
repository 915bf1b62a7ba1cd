"""
Milestone model definitions.

Milestones are funded, dated units of work inside a project. Status,
supervisor gate and escrow status are only ever written by the
transition engine; the create/update schemas do not expose them.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from milestone_escrow.models.enums import EscrowStatus, MilestoneStatus
from milestone_escrow.utils.datetime_utils import ensure_utc, now_utc


def _normalize_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise ValueError("currency must be a three-letter code")
    return value


class MilestoneBase(BaseModel):
    """Base milestone fields."""

    project_id: UUID = Field(..., description="Project ID")
    title: str = Field(..., min_length=3, max_length=200, description="Milestone title")
    scope: str = Field(..., min_length=10, max_length=5000, description="Work to be delivered")
    acceptance_criteria: str = Field(
        ...,
        min_length=10,
        max_length=5000,
        description="How the owner will judge the delivered work",
    )
    due_date: datetime = Field(..., description="Target due date (advisory)")
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Escrow amount")
    currency: Optional[str] = Field(None, description="ISO currency code, defaults to settings")

    @field_validator("title", "scope", "acceptance_criteria", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_currency(value)


class MilestoneCreate(MilestoneBase):
    """Schema for proposing a milestone."""

    draft: bool = Field(False, description="Create in DRAFT instead of PROPOSED")

    @field_validator("due_date")
    @classmethod
    def _due_date_not_past(cls, value: datetime) -> datetime:
        value = ensure_utc(value)
        today = now_utc().replace(hour=0, minute=0, second=0, microsecond=0)
        if value < today:
            raise ValueError("due_date must not be in the past")
        return value


class MilestoneUpdate(BaseModel):
    """Schema for editing milestone terms."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    scope: Optional[str] = Field(None, min_length=10, max_length=5000)
    acceptance_criteria: Optional[str] = Field(None, min_length=10, max_length=5000)
    due_date: Optional[datetime] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_currency(value)


class Milestone(MilestoneBase):
    """Complete milestone model."""

    id: UUID
    currency: str
    created_by: str = Field(..., description="Proposer user ID")
    status: MilestoneStatus = Field(MilestoneStatus.PROPOSED)
    supervisor_gate: bool = Field(False, description="Supervisor has approved the submitted work")
    escrow_status: EscrowStatus = Field(EscrowStatus.PENDING)
    submission_notes: Optional[str] = None
    dispute_reason: Optional[str] = None
    version: int = Field(1, ge=1)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MilestoneState(BaseModel):
    """The mutable workflow fields written by a transition."""

    status: MilestoneStatus
    supervisor_gate: bool
    escrow_status: EscrowStatus
    submission_notes: Optional[str] = None
    dispute_reason: Optional[str] = None


class SubmitWorkRequest(BaseModel):
    """Body for submitting milestone work."""

    notes: Optional[str] = Field(None, min_length=10, max_length=2000)


class DisputeRequest(BaseModel):
    """Body for raising a dispute."""

    reason: Optional[str] = Field(None, max_length=2000)
