"""
Authenticated user and actor context models.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from milestone_escrow.models.enums import UserRole


class User(BaseModel):
    """Authenticated user as handed over by the auth provider."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[UserRole] = None


@dataclass(frozen=True)
class ActorContext:
    """Who is acting. Passed explicitly into every service call."""

    user_id: str
    role: Optional[UserRole]

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        return cls(user_id=user.id, role=user.role)
