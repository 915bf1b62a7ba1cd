"""
Escrow ledger interface.

The ledger holds and releases funds for milestones. Implementations must be
idempotent per milestone: repeating a call that already succeeded returns
the original receipt instead of moving money again.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from uuid import UUID

from milestone_escrow.models.escrow import EscrowRecord, FundingReceipt, ReleaseReceipt


class IEscrowLedger(ABC):
    """Interface for escrow funding and release."""

    @abstractmethod
    async def fund(self, milestone_id: UUID, amount: Decimal, currency: str) -> FundingReceipt:
        """
        Hold funds for a milestone.

        Raises:
            EscrowLedgerError: if the funds could not be held, or the milestone
                was already funded with a different amount/currency
        """
        pass

    @abstractmethod
    async def release(self, milestone_id: UUID) -> ReleaseReceipt:
        """
        Release held funds for a milestone.

        Raises:
            EscrowLedgerError: if nothing is held for the milestone or the
                release failed
        """
        pass

    @abstractmethod
    async def get(self, milestone_id: UUID) -> EscrowRecord | None:
        """Get the ledger record for a milestone."""
        pass
