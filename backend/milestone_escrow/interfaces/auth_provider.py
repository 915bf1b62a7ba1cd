"""
Authentication provider interface.
"""

from abc import ABC, abstractmethod

from milestone_escrow.models.user import User

class IAuthProvider(ABC):
    """Interface for authentication providers."""

    @abstractmethod
    async def verify_token(self, token: str) -> User:
        """
        Verify a bearer token and return the user.

        Raises:
            AuthenticationError: if the token is invalid
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        pass
