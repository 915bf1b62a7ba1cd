"""API routers."""

from milestone_escrow.api import milestones, notifications, projects

__all__ = [
    "milestones",
    "notifications",
    "projects",
]
