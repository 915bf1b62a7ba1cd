"""
Escrow ledger receipt models.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from milestone_escrow.models.enums import EscrowStatus


class FundingReceipt(BaseModel):
    """Proof that funds for a milestone are held."""

    milestone_id: UUID
    reference: str
    amount: Decimal
    currency: str
    funded_at: datetime


class ReleaseReceipt(BaseModel):
    """Proof that held funds for a milestone were released."""

    milestone_id: UUID
    reference: str
    amount: Decimal
    currency: str
    released_at: datetime


class EscrowRecord(BaseModel):
    """Ledger-side view of one milestone's escrow."""

    milestone_id: UUID
    reference: str
    amount_held: Decimal
    currency: str
    status: EscrowStatus
    funded_at: datetime | None = None
    released_at: datetime | None = None

    class Config:
        from_attributes = True
