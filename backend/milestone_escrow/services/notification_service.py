"""
Notifications for milestone workflow events.

Each committed transition is turned into in-app notifications for the
audience that has to act next (or wants to know money moved). The actor
never notifies themselves.
"""

from dataclasses import dataclass

from milestone_escrow.core.logger import setup_logger
from milestone_escrow.interfaces.notification_dispatcher import INotificationDispatcher
from milestone_escrow.interfaces.notification_repository import INotificationRepository
from milestone_escrow.interfaces.project_repository import IProjectRepository
from milestone_escrow.models.enums import MilestoneStatus
from milestone_escrow.models.events import MilestoneTransitionEvent
from milestone_escrow.models.notification import NotificationCreate, NotificationType
from milestone_escrow.models.project import Project

logger = setup_logger(__name__)


@dataclass(frozen=True)
class _Template:
    type: NotificationType
    title: str
    message: str
    owner: bool = False
    assignees: bool = False
    supervisors: bool = False


_TEMPLATES: dict[MilestoneStatus, _Template] = {
    MilestoneStatus.FUNDED: _Template(
        NotificationType.MILESTONE_FUNDED,
        "Milestone funded",
        "Escrow for \"{title}\" is funded. Work can begin.",
        assignees=True,
    ),
    MilestoneStatus.SUBMITTED: _Template(
        NotificationType.MILESTONE_SUBMITTED,
        "Work submitted",
        "Work for \"{title}\" was submitted for review.",
        owner=True,
        supervisors=True,
    ),
    MilestoneStatus.PARTNER_REVIEW: _Template(
        NotificationType.MILESTONE_SUPERVISOR_APPROVED,
        "Ready for your review",
        "\"{title}\" is waiting for your review.",
        owner=True,
    ),
    MilestoneStatus.CHANGES_REQUESTED: _Template(
        NotificationType.MILESTONE_CHANGES_REQUESTED,
        "Changes requested",
        "Changes were requested on \"{title}\".",
        assignees=True,
    ),
    MilestoneStatus.RELEASED: _Template(
        NotificationType.MILESTONE_RELEASED,
        "Escrow released",
        "Escrow for \"{title}\" was released.",
        owner=True,
        assignees=True,
    ),
    MilestoneStatus.COMPLETED: _Template(
        NotificationType.MILESTONE_COMPLETED,
        "Milestone completed",
        "\"{title}\" was marked complete.",
        assignees=True,
    ),
    MilestoneStatus.DISPUTED: _Template(
        NotificationType.MILESTONE_DISPUTED,
        "Dispute raised",
        "A dispute was raised on \"{title}\".",
        owner=True,
        assignees=True,
        supervisors=True,
    ),
}


def resolve_recipients(event: MilestoneTransitionEvent, project: Project) -> set[str]:
    """Audience for an event, excluding the actor. Empty when nobody is notified."""
    template = _TEMPLATES.get(event.new_status)
    if template is None:
        return set()

    recipients: set[str] = set()
    if template.owner:
        recipients.add(project.owner_id)
    if template.assignees:
        recipients.update(project.assignee_ids)
    if template.supervisors:
        recipients.update(project.supervisor_ids)
    return recipients - {event.actor_id}


def build_notifications(event: MilestoneTransitionEvent, project: Project) -> list[NotificationCreate]:
    template = _TEMPLATES.get(event.new_status)
    if template is None:
        return []

    return [
        NotificationCreate(
            user_id=uid,
            type=template.type,
            title=template.title,
            message=template.message.format(title=event.milestone_title),
            milestone_id=event.milestone_id,
            project_id=project.id,
            milestone_status=event.new_status,
            actor_id=event.actor_id,
        )
        for uid in sorted(resolve_recipients(event, project))
    ]


class NotificationDispatcher(INotificationDispatcher):
    """Persists in-app notifications for milestone transitions."""

    def __init__(
        self,
        notification_repo: INotificationRepository,
        project_repo: IProjectRepository,
    ):
        self._notification_repo = notification_repo
        self._project_repo = project_repo

    async def dispatch(self, event: MilestoneTransitionEvent) -> None:
        project = await self._project_repo.get(event.project_id)
        if not project:
            logger.warning(
                "Project %s for milestone %s not found, skipping notifications",
                event.project_id, event.milestone_id,
            )
            return

        notifications = build_notifications(event, project)
        if not notifications:
            return

        await self._notification_repo.create_bulk(notifications)
        logger.info(
            "Sent %d notification(s) for milestone %s (%s -> %s)",
            len(notifications), event.milestone_id,
            event.old_status.value, event.new_status.value,
        )


class NullNotificationDispatcher(INotificationDispatcher):
    """Dispatcher used when NOTIFICATIONS_ENABLED is off."""

    async def dispatch(self, event: MilestoneTransitionEvent) -> None:
        return None
