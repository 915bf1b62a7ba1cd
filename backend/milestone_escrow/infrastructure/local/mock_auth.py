"""
Mock authentication provider for local development.

Tokens have the form "<role>:<user_id>", e.g. "partner:acme". A bare
token is treated as a user id with no platform role.
"""

from typing import Optional

from milestone_escrow.core.exceptions import AuthenticationError
from milestone_escrow.interfaces.auth_provider import IAuthProvider
from milestone_escrow.models.enums import UserRole
from milestone_escrow.models.user import User


class MockAuthProvider(IAuthProvider):
    """Mock auth provider that trusts the token contents."""

    def __init__(self, enabled: bool = True):
        """
        Initialize mock auth provider.

        Args:
            enabled: Whether authentication is required
        """
        self._enabled = enabled
        self._mock_users = {
            "dev_user": User(
                id="dev_user",
                email="dev@example.com",
                display_name="Developer",
                role=UserRole.SUPER_ADMIN,
            ),
        }

    async def verify_token(self, token: str) -> User:
        """
        Verify token - in mock mode, token carries the role and user id.

        Args:
            token: "<role>:<user_id>" or a user id

        Returns:
            Mock user
        """
        if token in self._mock_users:
            return self._mock_users[token]

        role: Optional[UserRole] = None
        user_id = token
        if ":" in token:
            role_value, user_id = token.split(":", 1)
            try:
                role = UserRole(role_value)
            except ValueError as exc:
                raise AuthenticationError(f"Unknown role in token: {role_value}") from exc
        if not user_id:
            raise AuthenticationError("Token does not name a user")
        return User(id=user_id, email=f"{user_id}@example.com", display_name=user_id, role=role)

    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        return self._enabled
