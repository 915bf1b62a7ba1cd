"""
SQLite-backed escrow ledger for local development.

Keeps one escrow row per milestone. Funding and release are idempotent on
milestone id: a repeated call returns the receipt of the call that moved
the money.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from milestone_escrow.core.exceptions import EscrowLedgerError
from milestone_escrow.core.logger import setup_logger
from milestone_escrow.infrastructure.local.database import EscrowORM, get_session_factory
from milestone_escrow.interfaces.escrow_ledger import IEscrowLedger
from milestone_escrow.models.enums import EscrowStatus
from milestone_escrow.models.escrow import EscrowRecord, FundingReceipt, ReleaseReceipt
from milestone_escrow.utils.datetime_utils import ensure_utc, now_utc

logger = setup_logger(__name__)


def _new_reference() -> str:
    return f"ESC-{uuid.uuid4().hex[:16].upper()}"


class SqliteEscrowLedger(IEscrowLedger):
    """Escrow ledger persisted in the local SQLite database."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_record(self, orm: EscrowORM) -> EscrowRecord:
        return EscrowRecord(
            milestone_id=UUID(orm.milestone_id),
            reference=orm.reference,
            amount_held=Decimal(orm.amount_held),
            currency=orm.currency,
            status=EscrowStatus(orm.status),
            funded_at=ensure_utc(orm.funded_at),
            released_at=ensure_utc(orm.released_at),
        )

    def _funding_receipt(self, orm: EscrowORM) -> FundingReceipt:
        return FundingReceipt(
            milestone_id=UUID(orm.milestone_id),
            reference=orm.reference,
            amount=Decimal(orm.amount_held),
            currency=orm.currency,
            funded_at=ensure_utc(orm.funded_at),
        )

    async def _get_orm(self, session, milestone_id: UUID) -> EscrowORM | None:
        result = await session.execute(
            select(EscrowORM).where(EscrowORM.milestone_id == str(milestone_id))
        )
        return result.scalar_one_or_none()

    async def fund(self, milestone_id: UUID, amount: Decimal, currency: str) -> FundingReceipt:
        if amount < 0:
            raise EscrowLedgerError(f"Cannot fund a negative amount: {amount}")

        async with self._session_factory() as session:
            existing = await self._get_orm(session, milestone_id)
            if existing:
                if Decimal(existing.amount_held) != amount or existing.currency != currency:
                    raise EscrowLedgerError(
                        f"Milestone {milestone_id} is already funded with "
                        f"{existing.amount_held} {existing.currency}"
                    )
                logger.info("Escrow for milestone %s already funded (%s)", milestone_id, existing.reference)
                return self._funding_receipt(existing)

            orm = EscrowORM(
                id=str(uuid.uuid4()),
                milestone_id=str(milestone_id),
                reference=_new_reference(),
                amount_held=amount,
                currency=currency,
                status=EscrowStatus.FUNDED.value,
                funded_at=now_utc(),
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise EscrowLedgerError(
                    f"Concurrent funding detected for milestone {milestone_id}"
                ) from exc
            await session.refresh(orm)
            logger.info(
                "Funded escrow %s for milestone %s: %s %s",
                orm.reference, milestone_id, amount, currency,
            )
            return self._funding_receipt(orm)

    async def release(self, milestone_id: UUID) -> ReleaseReceipt:
        async with self._session_factory() as session:
            orm = await self._get_orm(session, milestone_id)
            if not orm:
                raise EscrowLedgerError(f"No funds held for milestone {milestone_id}")

            if orm.status != EscrowStatus.RELEASED.value:
                orm.status = EscrowStatus.RELEASED.value
                orm.released_at = now_utc()
                await session.commit()
                await session.refresh(orm)
                logger.info("Released escrow %s for milestone %s", orm.reference, milestone_id)
            else:
                logger.info("Escrow %s for milestone %s already released", orm.reference, milestone_id)

            return ReleaseReceipt(
                milestone_id=milestone_id,
                reference=orm.reference,
                amount=Decimal(orm.amount_held),
                currency=orm.currency,
                released_at=ensure_utc(orm.released_at),
            )

    async def get(self, milestone_id: UUID) -> EscrowRecord | None:
        async with self._session_factory() as session:
            orm = await self._get_orm(session, milestone_id)
            return self._orm_to_record(orm) if orm else None
