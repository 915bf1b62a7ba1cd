"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from milestone_escrow.core.config import get_settings
from milestone_escrow.interfaces.auth_provider import IAuthProvider
from milestone_escrow.interfaces.escrow_ledger import IEscrowLedger
from milestone_escrow.interfaces.milestone_repository import IMilestoneRepository
from milestone_escrow.interfaces.notification_dispatcher import INotificationDispatcher
from milestone_escrow.interfaces.notification_repository import INotificationRepository
from milestone_escrow.interfaces.project_repository import IProjectRepository
from milestone_escrow.models.enums import UserRole
from milestone_escrow.models.user import ActorContext, User
from milestone_escrow.services.milestone_service import MilestoneService


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_project_repository() -> IProjectRepository:
    """Get project repository instance."""
    settings = get_settings()
    if settings.is_gcp:
        raise NotImplementedError("Firestore not implemented yet")
    else:
        from milestone_escrow.infrastructure.local.project_repository import SqliteProjectRepository
        return SqliteProjectRepository()


@lru_cache()
def get_milestone_repository() -> IMilestoneRepository:
    """Get milestone repository instance."""
    settings = get_settings()
    if settings.is_gcp:
        raise NotImplementedError("Firestore not implemented yet")
    else:
        from milestone_escrow.infrastructure.local.milestone_repository import SqliteMilestoneRepository
        return SqliteMilestoneRepository()


@lru_cache()
def get_notification_repository() -> INotificationRepository:
    """Get notification repository instance."""
    settings = get_settings()
    if settings.is_gcp:
        raise NotImplementedError("Firestore not implemented yet")
    else:
        from milestone_escrow.infrastructure.local.notification_repository import (
            SqliteNotificationRepository,
        )
        return SqliteNotificationRepository()


# ===========================================
# Escrow / Notification Providers
# ===========================================


@lru_cache()
def get_escrow_ledger() -> IEscrowLedger:
    """Get escrow ledger instance."""
    settings = get_settings()
    if settings.is_gcp:
        raise NotImplementedError("Payment provider ledger not implemented yet")
    else:
        from milestone_escrow.infrastructure.local.escrow_ledger import SqliteEscrowLedger
        return SqliteEscrowLedger()


@lru_cache()
def get_notification_dispatcher() -> INotificationDispatcher:
    """Get notification dispatcher instance."""
    from milestone_escrow.services.notification_service import (
        NotificationDispatcher,
        NullNotificationDispatcher,
    )

    if not get_settings().NOTIFICATIONS_ENABLED:
        return NullNotificationDispatcher()
    return NotificationDispatcher(get_notification_repository(), get_project_repository())


@lru_cache()
def get_milestone_service() -> MilestoneService:
    """Get milestone service instance. One instance per process so the lock registry is shared."""
    return MilestoneService(
        milestone_repo=get_milestone_repository(),
        project_repo=get_project_repository(),
        escrow_ledger=get_escrow_ledger(),
        dispatcher=get_notification_dispatcher(),
    )


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    settings = get_settings()
    from milestone_escrow.infrastructure.local.mock_auth import MockAuthProvider
    return MockAuthProvider(enabled=settings.AUTH_REQUIRED)


# ===========================================
# User Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    In mock mode the bearer token is "<role>:<user_id>".
    """
    if not auth_provider.is_enabled():
        # Mock user for development
        return User(
            id="dev_user",
            email="dev@example.com",
            display_name="Developer",
            role=UserRole.SUPER_ADMIN,
        )

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


def get_actor(user: Annotated[User, Depends(get_current_user)]) -> ActorContext:
    return ActorContext.from_user(user)


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

ProjectRepo = Annotated[IProjectRepository, Depends(get_project_repository)]
NotificationRepo = Annotated[INotificationRepository, Depends(get_notification_repository)]
MilestoneSvc = Annotated[MilestoneService, Depends(get_milestone_service)]
Actor = Annotated[ActorContext, Depends(get_actor)]
