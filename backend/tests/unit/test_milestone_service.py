"""
Unit tests for MilestoneService.

Runs the workflow against SQLite repositories and an in-memory ledger,
with the notification dispatcher mocked out.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from milestone_escrow.core.exceptions import (
    ConcurrentModificationError,
    EditNotAllowed,
    EscrowLedgerError,
    EscrowOperationFailed,
    GateNotSatisfied,
    InvalidTransition,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from milestone_escrow.interfaces.escrow_ledger import IEscrowLedger
from milestone_escrow.models.enums import EscrowStatus, MilestoneAction, MilestoneStatus, UserRole
from milestone_escrow.models.escrow import EscrowRecord, FundingReceipt, ReleaseReceipt
from milestone_escrow.models.milestone import MilestoneUpdate
from milestone_escrow.models.user import ActorContext
from milestone_escrow.services.milestone_service import MilestoneLockRegistry, MilestoneService
from milestone_escrow.utils.datetime_utils import now_utc


class FakeLedger(IEscrowLedger):
    def __init__(self):
        self.fund_calls: list[tuple[UUID, Decimal, str]] = []
        self.release_calls: list[UUID] = []
        self.records: dict[UUID, EscrowRecord] = {}
        self.fail_next: Exception | None = None

    def _maybe_fail(self):
        if self.fail_next:
            exc, self.fail_next = self.fail_next, None
            raise exc

    async def fund(self, milestone_id, amount, currency):
        self._maybe_fail()
        if milestone_id not in self.records:
            self.fund_calls.append((milestone_id, amount, currency))
            self.records[milestone_id] = EscrowRecord(
                milestone_id=milestone_id,
                reference="ESC-TEST",
                amount_held=amount,
                currency=currency,
                status=EscrowStatus.FUNDED,
                funded_at=now_utc(),
            )
        return FundingReceipt(
            milestone_id=milestone_id,
            reference="ESC-TEST",
            amount=amount,
            currency=currency,
            funded_at=now_utc(),
        )

    async def release(self, milestone_id):
        self._maybe_fail()
        self.release_calls.append(milestone_id)
        return ReleaseReceipt(
            milestone_id=milestone_id,
            reference="ESC-TEST",
            amount=Decimal("0"),
            currency="USD",
            released_at=now_utc(),
        )

    async def get(self, milestone_id) -> EscrowRecord | None:
        return self.records.get(milestone_id)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def dispatcher():
    mock = AsyncMock()
    mock.dispatch = AsyncMock(return_value=None)
    return mock


@pytest_asyncio.fixture
async def service(milestone_repo, project_repo, ledger, dispatcher):
    service = MilestoneService(milestone_repo, project_repo, ledger, dispatcher)
    yield service
    await service.wait_for_notifications()


@pytest_asyncio.fixture
async def proposed(service, owner, project, make_milestone_create):
    return await service.propose_milestone(owner, make_milestone_create(project.id))


async def _drive_to(service, milestone_id, owner, student, supervisor, target: MilestoneStatus):
    """Walk a PROPOSED milestone forward along the happy path until target."""
    steps = [
        (MilestoneStatus.FINALIZED, lambda: service.finalize_milestone(owner, milestone_id)),
        (MilestoneStatus.FUNDED, lambda: service.fund_milestone(owner, milestone_id)),
        (MilestoneStatus.IN_PROGRESS, lambda: service.begin_work(student, milestone_id)),
        (MilestoneStatus.SUPERVISOR_REVIEW, lambda: service.submit_work(student, milestone_id)),
        (MilestoneStatus.PARTNER_REVIEW, lambda: service.supervisor_approve(supervisor, milestone_id)),
        (MilestoneStatus.RELEASED, lambda: service.approve_and_release(owner, milestone_id)),
        (MilestoneStatus.COMPLETED, lambda: service.mark_complete(owner, milestone_id)),
    ]
    milestone = None
    for status, step in steps:
        milestone = await step()
        if status == target:
            return milestone
    raise AssertionError(f"{target} is not on the happy path")


# ============================================
# Proposal
# ============================================


class TestPropose:
    @pytest.mark.asyncio
    async def test_owner_proposes(self, proposed, test_user_id):
        assert proposed.status == MilestoneStatus.PROPOSED
        assert proposed.amount == Decimal("1000.00")
        assert proposed.currency == "USD"
        assert proposed.created_by == test_user_id
        assert proposed.supervisor_gate is False
        assert proposed.escrow_status == EscrowStatus.PENDING

    @pytest.mark.asyncio
    async def test_draft(self, service, owner, project, make_milestone_create):
        milestone = await service.propose_milestone(owner, make_milestone_create(project.id, draft=True))
        assert milestone.status == MilestoneStatus.DRAFT

    @pytest.mark.asyncio
    async def test_explicit_currency(self, service, owner, project, make_milestone_create):
        milestone = await service.propose_milestone(
            owner, make_milestone_create(project.id, currency="eur")
        )
        assert milestone.currency == "EUR"

    @pytest.mark.asyncio
    async def test_student_cannot_propose(self, service, student, project, make_milestone_create):
        with pytest.raises(PermissionDenied):
            await service.propose_milestone(student, make_milestone_create(project.id))

    @pytest.mark.asyncio
    async def test_other_partner_cannot_propose(self, service, project, make_milestone_create):
        stranger = ActorContext(user_id="partner_2", role=UserRole.PARTNER)
        with pytest.raises(PermissionDenied):
            await service.propose_milestone(stranger, make_milestone_create(project.id))

    @pytest.mark.asyncio
    async def test_unknown_project(self, service, owner, make_milestone_create):
        with pytest.raises(NotFoundError):
            await service.propose_milestone(owner, make_milestone_create(uuid4()))


# ============================================
# Example scenarios
# ============================================


class TestScenarios:
    @pytest.mark.asyncio
    async def test_finalize_and_fund_records_one_funding(self, service, owner, proposed, ledger):
        finalized = await service.finalize_milestone(owner, proposed.id)
        assert finalized.status == MilestoneStatus.FINALIZED

        funded = await service.fund_milestone(owner, proposed.id)
        assert funded.status == MilestoneStatus.FUNDED
        assert funded.escrow_status == EscrowStatus.FUNDED
        assert ledger.fund_calls == [(proposed.id, Decimal("1000.00"), "USD")]

    @pytest.mark.asyncio
    async def test_release_blocked_until_supervisor_approves(
        self, service, owner, student, supervisor, proposed, ledger
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.FUNDED)

        in_progress = await service.begin_work(student, proposed.id)
        assert in_progress.status == MilestoneStatus.IN_PROGRESS
        submitted = await service.submit_work(student, proposed.id, notes="Pipeline merged, see README")
        assert submitted.status == MilestoneStatus.SUPERVISOR_REVIEW
        assert submitted.submission_notes == "Pipeline merged, see README"

        with pytest.raises(GateNotSatisfied):
            await service.approve_and_release(owner, proposed.id)
        assert ledger.release_calls == []

    @pytest.mark.asyncio
    async def test_supervisor_approval_then_release(
        self, service, owner, student, supervisor, proposed, ledger
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.SUPERVISOR_REVIEW)

        approved = await service.supervisor_approve(supervisor, proposed.id)
        assert approved.status == MilestoneStatus.PARTNER_REVIEW
        assert approved.supervisor_gate is True

        released = await service.approve_and_release(owner, proposed.id)
        assert released.status == MilestoneStatus.RELEASED
        assert released.escrow_status == EscrowStatus.RELEASED
        assert ledger.release_calls == [proposed.id]

    @pytest.mark.asyncio
    async def test_request_changes_outside_partner_review(
        self, service, owner, student, supervisor, proposed
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.IN_PROGRESS)
        with pytest.raises(InvalidTransition):
            await service.request_changes(owner, proposed.id)

    @pytest.mark.asyncio
    async def test_assignee_can_never_release(self, service, owner, student, supervisor, proposed):
        with pytest.raises(PermissionDenied):
            await service.approve_and_release(student, proposed.id)

        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.PARTNER_REVIEW)
        with pytest.raises(PermissionDenied):
            await service.approve_and_release(student, proposed.id)


# ============================================
# Properties
# ============================================


class TestSingleFunding:
    @pytest.mark.asyncio
    async def test_second_fund_is_a_no_op(self, service, owner, proposed, ledger, dispatcher):
        await service.finalize_milestone(owner, proposed.id)
        first = await service.fund_milestone(owner, proposed.id)
        second = await service.fund_milestone(owner, proposed.id)
        await service.wait_for_notifications()

        assert second.status == MilestoneStatus.FUNDED
        assert second.version == first.version
        assert len(ledger.fund_calls) == 1
        funded_events = [
            c.args[0] for c in dispatcher.dispatch.call_args_list
            if c.args[0].new_status == MilestoneStatus.FUNDED
        ]
        assert len(funded_events) == 1

    @pytest.mark.asyncio
    async def test_concurrent_funding_calls_ledger_once(self, service, owner, proposed, ledger):
        await service.finalize_milestone(owner, proposed.id)
        results = await asyncio.gather(*[service.fund_milestone(owner, proposed.id) for _ in range(5)])
        assert {m.status for m in results} == {MilestoneStatus.FUNDED}
        assert len(ledger.fund_calls) == 1

    @pytest.mark.asyncio
    async def test_fund_before_finalize(self, service, owner, proposed, ledger):
        with pytest.raises(InvalidTransition):
            await service.fund_milestone(owner, proposed.id)
        assert ledger.fund_calls == []


class TestCompletion:
    @pytest.mark.asyncio
    async def test_mark_then_unmark_returns_to_released(
        self, service, owner, student, supervisor, proposed
    ):
        released = await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.RELEASED)

        completed = await service.mark_complete(owner, proposed.id)
        assert completed.status == MilestoneStatus.COMPLETED

        reverted = await service.unmark_complete(owner, proposed.id)
        assert reverted.status == MilestoneStatus.RELEASED
        assert reverted.supervisor_gate == released.supervisor_gate
        assert reverted.escrow_status == EscrowStatus.RELEASED

    @pytest.mark.asyncio
    async def test_student_cannot_mark_complete(self, service, owner, student, supervisor, proposed):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.RELEASED)
        with pytest.raises(PermissionDenied):
            await service.mark_complete(student, proposed.id)

    @pytest.mark.asyncio
    async def test_unmark_without_completion_is_rejected(
        self, service, owner, student, supervisor, proposed
    ):
        released = await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.RELEASED)

        perms = await service.get_permissions(owner, proposed.id)
        assert perms.can_unmark_as_complete is False
        with pytest.raises(InvalidTransition):
            await service.unmark_complete(owner, proposed.id)

        stored = await service.get_milestone(owner, proposed.id)
        assert stored.version == released.version


class TestEditWindow:
    @pytest.mark.asyncio
    async def test_owner_edits_finalized(self, service, owner, proposed):
        await service.finalize_milestone(owner, proposed.id)
        edited = await service.edit_milestone(
            owner, proposed.id, MilestoneUpdate(title="Data pipeline v2", amount=Decimal("1200.00"))
        )
        assert edited.title == "Data pipeline v2"
        assert edited.amount == Decimal("1200.00")
        assert edited.status == MilestoneStatus.FINALIZED
        assert edited.version == proposed.version + 2

    @pytest.mark.asyncio
    async def test_edit_in_progress_fails(self, service, owner, student, supervisor, admin, proposed):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.IN_PROGRESS)
        for actor in (owner, admin):
            with pytest.raises(EditNotAllowed):
                await service.edit_milestone(actor, proposed.id, MilestoneUpdate(title="Late change"))

    @pytest.mark.asyncio
    async def test_amount_locked_once_funded(self, service, owner, proposed):
        await service.finalize_milestone(owner, proposed.id)
        await service.fund_milestone(owner, proposed.id)

        with pytest.raises(EditNotAllowed) as exc_info:
            await service.edit_milestone(owner, proposed.id, MilestoneUpdate(amount=Decimal("5.00")))
        assert exc_info.value.fields == ["amount"]

        edited = await service.edit_milestone(
            owner, proposed.id, MilestoneUpdate(scope="Ingest readings and weather data")
        )
        assert edited.scope == "Ingest readings and weather data"
        assert edited.amount == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_due_date_cannot_move_into_the_past(self, service, owner, proposed):
        with pytest.raises(ValidationError):
            await service.edit_milestone(
                owner, proposed.id, MilestoneUpdate(due_date=now_utc() - timedelta(days=3))
            )

    @pytest.mark.asyncio
    async def test_student_cannot_edit(self, service, student, proposed):
        with pytest.raises(PermissionDenied):
            await service.edit_milestone(student, proposed.id, MilestoneUpdate(title="Mine now"))

    @pytest.mark.asyncio
    async def test_empty_edit_returns_milestone_unchanged(self, service, owner, proposed):
        unchanged = await service.edit_milestone(owner, proposed.id, MilestoneUpdate())
        assert unchanged.version == proposed.version


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_proposed(self, service, owner, proposed, milestone_repo):
        await service.delete_milestone(owner, proposed.id)
        assert await milestone_repo.get_by_id(proposed.id) is None

    @pytest.mark.asyncio
    async def test_delete_funded_fails(self, service, owner, proposed):
        await service.finalize_milestone(owner, proposed.id)
        await service.fund_milestone(owner, proposed.id)
        with pytest.raises(InvalidTransition):
            await service.delete_milestone(owner, proposed.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, service, owner):
        with pytest.raises(NotFoundError):
            await service.delete_milestone(owner, uuid4())


# ============================================
# Review loop and disputes
# ============================================


class TestReviewLoop:
    @pytest.mark.asyncio
    async def test_supervisor_reject_then_resubmit(self, service, owner, student, supervisor, proposed):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.SUPERVISOR_REVIEW)

        rejected = await service.supervisor_reject(supervisor, proposed.id)
        assert rejected.status == MilestoneStatus.CHANGES_REQUESTED
        assert rejected.supervisor_gate is False

        resubmitted = await service.submit_work(student, proposed.id)
        assert resubmitted.status == MilestoneStatus.SUPERVISOR_REVIEW

    @pytest.mark.asyncio
    async def test_request_changes_clears_gate(self, service, owner, student, supervisor, proposed):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.PARTNER_REVIEW)

        changes = await service.request_changes(owner, proposed.id)
        assert changes.status == MilestoneStatus.CHANGES_REQUESTED
        assert changes.supervisor_gate is False

        await service.submit_work(student, proposed.id)
        with pytest.raises(GateNotSatisfied):
            await service.approve_and_release(owner, proposed.id)

    @pytest.mark.asyncio
    async def test_disapprove_then_rerelease_skips_ledger(
        self, service, owner, student, supervisor, proposed, ledger
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.RELEASED)

        reverted = await service.disapprove(owner, proposed.id)
        assert reverted.status == MilestoneStatus.PARTNER_REVIEW
        assert reverted.supervisor_gate is False
        assert reverted.escrow_status == EscrowStatus.RELEASED

        with pytest.raises(GateNotSatisfied):
            await service.approve_and_release(owner, proposed.id)

        await service.request_changes(owner, proposed.id)
        await service.submit_work(student, proposed.id)
        await service.supervisor_approve(supervisor, proposed.id)
        rereleased = await service.approve_and_release(owner, proposed.id)
        assert rereleased.status == MilestoneStatus.RELEASED
        assert ledger.release_calls == [proposed.id]

    @pytest.mark.asyncio
    async def test_supervisor_approve_replay_is_a_no_op(self, service, owner, student, supervisor, proposed):
        first = await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.PARTNER_REVIEW)
        again = await service.supervisor_approve(supervisor, proposed.id)
        assert again.version == first.version

    @pytest.mark.asyncio
    async def test_request_changes_after_supervisor_reject_is_rejected(
        self, service, owner, student, supervisor, proposed
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.SUPERVISOR_REVIEW)
        await service.supervisor_reject(supervisor, proposed.id)

        with pytest.raises(InvalidTransition):
            await service.request_changes(owner, proposed.id)

    @pytest.mark.asyncio
    async def test_supervisor_reject_after_request_changes_is_rejected(
        self, service, owner, student, supervisor, proposed
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.PARTNER_REVIEW)
        await service.request_changes(owner, proposed.id)

        with pytest.raises(InvalidTransition):
            await service.supervisor_reject(supervisor, proposed.id)

    @pytest.mark.asyncio
    async def test_unlisted_supervisor_cannot_review(
        self, service, owner, student, supervisor, proposed
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.SUPERVISOR_REVIEW)
        outsider = ActorContext(user_id="supervisor_other_university", role=UserRole.SUPERVISOR)

        perms = await service.get_permissions(outsider, proposed.id)
        assert perms.can_supervisor_approve is False
        assert perms.can_supervisor_reject is False

        with pytest.raises(PermissionDenied):
            await service.supervisor_approve(outsider, proposed.id)
        with pytest.raises(PermissionDenied):
            await service.supervisor_reject(outsider, proposed.id)
        with pytest.raises(PermissionDenied):
            await service.raise_dispute(outsider, proposed.id)

        stored = await service.get_milestone(owner, proposed.id)
        assert stored.status == MilestoneStatus.SUPERVISOR_REVIEW
        assert stored.supervisor_gate is False

    @pytest.mark.asyncio
    async def test_submit_from_finalized_cannot_release_unfunded(
        self, service, owner, student, supervisor, proposed, ledger
    ):
        await service.finalize_milestone(owner, proposed.id)
        perms = await service.get_permissions(student, proposed.id)
        assert perms.can_submit is True

        submitted = await service.submit_work(student, proposed.id, notes="Early delivery")
        assert submitted.status == MilestoneStatus.SUPERVISOR_REVIEW
        assert submitted.escrow_status == EscrowStatus.PENDING

        await service.supervisor_approve(supervisor, proposed.id)
        with pytest.raises(EscrowOperationFailed):
            await service.approve_and_release(owner, proposed.id)
        assert ledger.release_calls == []


class TestDispute:
    @pytest.mark.asyncio
    async def test_student_disputes_active_work(self, service, owner, student, supervisor, proposed):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.IN_PROGRESS)
        disputed = await service.raise_dispute(student, proposed.id, reason="Requirements keep changing")
        assert disputed.status == MilestoneStatus.DISPUTED
        assert disputed.dispute_reason == "Requirements keep changing"

        with pytest.raises(InvalidTransition):
            await service.submit_work(student, proposed.id)

    @pytest.mark.asyncio
    async def test_student_cannot_dispute_before_work(self, service, student, proposed):
        with pytest.raises(InvalidTransition):
            await service.raise_dispute(student, proposed.id)

    @pytest.mark.asyncio
    async def test_admin_disputes_proposal(self, service, admin, proposed):
        disputed = await service.raise_dispute(admin, proposed.id)
        assert disputed.status == MilestoneStatus.DISPUTED


# ============================================
# Escrow failures
# ============================================


class TestEscrowFailures:
    @pytest.mark.asyncio
    async def test_fund_failure_leaves_status(self, service, owner, proposed, ledger, milestone_repo):
        await service.finalize_milestone(owner, proposed.id)
        ledger.fail_next = EscrowLedgerError("card declined")

        with pytest.raises(EscrowOperationFailed) as exc_info:
            await service.fund_milestone(owner, proposed.id)
        assert exc_info.value.operation == "fund"

        stored = await milestone_repo.get_by_id(proposed.id)
        assert stored.status == MilestoneStatus.FINALIZED
        assert stored.escrow_status == EscrowStatus.PENDING

        funded = await service.fund_milestone(owner, proposed.id)
        assert funded.status == MilestoneStatus.FUNDED

    @pytest.mark.asyncio
    async def test_release_failure_leaves_status(
        self, service, owner, student, supervisor, proposed, ledger, milestone_repo
    ):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.PARTNER_REVIEW)
        ledger.fail_next = EscrowLedgerError("provider timeout")

        with pytest.raises(EscrowOperationFailed):
            await service.approve_and_release(owner, proposed.id)

        stored = await milestone_repo.get_by_id(proposed.id)
        assert stored.status == MilestoneStatus.PARTNER_REVIEW
        assert stored.supervisor_gate is True

    @pytest.mark.asyncio
    async def test_funds_held_before_state_write_lock_the_amount(
        self, service, owner, proposed, ledger, milestone_repo, monkeypatch
    ):
        await service.finalize_milestone(owner, proposed.id)
        monkeypatch.setattr(milestone_repo, "save_state", AsyncMock(side_effect=RuntimeError("disk full")))
        with pytest.raises(RuntimeError):
            await service.fund_milestone(owner, proposed.id)
        monkeypatch.undo()

        stored = await milestone_repo.get_by_id(proposed.id)
        assert stored.status == MilestoneStatus.FINALIZED
        assert await ledger.get(proposed.id) is not None

        with pytest.raises(EditNotAllowed) as exc_info:
            await service.edit_milestone(owner, proposed.id, MilestoneUpdate(amount=Decimal("5000.00")))
        assert exc_info.value.fields == ["amount"]
        with pytest.raises(InvalidTransition):
            await service.delete_milestone(owner, proposed.id)

        funded = await service.fund_milestone(owner, proposed.id)
        assert funded.status == MilestoneStatus.FUNDED
        assert funded.amount == Decimal("1000.00")
        assert ledger.fund_calls == [(proposed.id, Decimal("1000.00"), "USD")]


# ============================================
# Notifications
# ============================================


class TestNotifications:
    @pytest.mark.asyncio
    async def test_submit_emits_two_events(self, service, owner, student, supervisor, proposed, dispatcher):
        await _drive_to(service, proposed.id, owner, student, supervisor, MilestoneStatus.IN_PROGRESS)
        await service.wait_for_notifications()
        dispatcher.dispatch.reset_mock()

        await service.submit_work(student, proposed.id)
        await service.wait_for_notifications()

        events = [c.args[0] for c in dispatcher.dispatch.call_args_list]
        assert [(e.old_status, e.new_status) for e in events] == [
            (MilestoneStatus.IN_PROGRESS, MilestoneStatus.SUBMITTED),
            (MilestoneStatus.SUBMITTED, MilestoneStatus.SUPERVISOR_REVIEW),
        ]
        assert all(e.action == MilestoneAction.SUBMIT for e in events)
        assert all(e.actor_id == "student_1" for e in events)

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_fail_transition(
        self, service, owner, proposed, dispatcher, milestone_repo
    ):
        dispatcher.dispatch.side_effect = RuntimeError("mail server down")
        await service.finalize_milestone(owner, proposed.id)
        funded = await service.fund_milestone(owner, proposed.id)
        await service.wait_for_notifications()

        assert funded.status == MilestoneStatus.FUNDED
        stored = await milestone_repo.get_by_id(proposed.id)
        assert stored.status == MilestoneStatus.FUNDED


# ============================================
# Reads and concurrency
# ============================================


class TestReads:
    @pytest.mark.asyncio
    async def test_permissions_for_owner(self, service, owner, proposed):
        perms = await service.get_permissions(owner, proposed.id)
        assert perms.can_finalize is True
        assert perms.can_edit is True
        assert perms.can_fund_escrow is False

    @pytest.mark.asyncio
    async def test_outsider_cannot_view(self, service, proposed):
        outsider = ActorContext(user_id="student_9", role=UserRole.STUDENT)
        with pytest.raises(PermissionDenied):
            await service.get_milestone(outsider, proposed.id)

    @pytest.mark.asyncio
    async def test_list_by_project(self, service, owner, project, proposed, make_milestone_create):
        await service.propose_milestone(owner, make_milestone_create(project.id, title="Dashboard UI"))
        milestones = await service.list_milestones(owner, project.id)
        assert {m.title for m in milestones} == {"Data pipeline", "Dashboard UI"}


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, service, owner, proposed, milestone_repo):
        await service.finalize_milestone(owner, proposed.id)
        with pytest.raises(ConcurrentModificationError):
            await milestone_repo.update_fields(proposed.id, proposed.version, {"title": "Stale write"})

    @pytest.mark.asyncio
    async def test_lock_registry_drops_idle_locks(self):
        locks = MilestoneLockRegistry()
        milestone_id = uuid4()
        async with locks.hold(milestone_id):
            assert len(locks) == 1
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_serializes_holders(self):
        locks = MilestoneLockRegistry()
        milestone_id = uuid4()
        order: list[str] = []

        async def worker(name: str):
            async with locks.hold(milestone_id):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]
