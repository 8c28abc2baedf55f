"""Authentication provider interface and an in-memory implementation."""

import hashlib
import hmac
import os

import structlog
from pydantic import BaseModel, Field

from src.errors import AuthenticationError

logger = structlog.get_logger(__name__)

# PBKDF2 iterations for the in-memory credential store
PASSWORD_HASH_ITERATIONS = 100_000


class AuthUser(BaseModel):
    """The authenticated user behind a session."""

    id: str = Field(..., description="User id")
    email: str = Field(default="", description="Login email")


class AuthProvider:
    """Abstract base class for the session's authentication provider.

    One instance represents one session: ``get_current_user`` returns
    the user the session belongs to, and ``verify_password`` checks a
    freshly entered password against that same user.
    """

    async def get_current_user(self) -> AuthUser:
        """Get the session's user.

        Raises:
            AuthenticationError: If there is no authenticated session.
        """
        raise NotImplementedError

    async def verify_password(self, password: str) -> None:
        """Check ``password`` against the session user's credential.

        Raises:
            AuthenticationError: If there is no session or the password is wrong.
        """
        raise NotImplementedError


def hash_password(password: str, salt: bytes | None = None) -> tuple[bytes, bytes]:
    """Hash a password with PBKDF2-SHA256.

    Returns:
        Tuple of (salt, digest).
    """
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt, PASSWORD_HASH_ITERATIONS
    )
    return salt, digest


class InMemoryAuthProvider(AuthProvider):
    """Credential store for development and testing."""

    def __init__(self, current_user_id: str | None = None) -> None:
        """Initialize with an optional signed-in user.

        Args:
            current_user_id: User id of the session, None for signed out.
        """
        self.current_user_id = current_user_id
        self._users: dict[str, AuthUser] = {}
        self._credentials: dict[str, tuple[bytes, bytes]] = {}

    def add_user(self, user_id: str, email: str, password: str) -> AuthUser:
        """Register a user and their password."""
        user = AuthUser(id=user_id, email=email)
        self._users[user_id] = user
        self._credentials[user_id] = hash_password(password)
        return user

    def sign_in_as(self, user_id: str | None) -> None:
        """Switch the session to another user (None signs out)."""
        self.current_user_id = user_id

    async def get_current_user(self) -> AuthUser:
        """Get the session's user."""
        if self.current_user_id is None or self.current_user_id not in self._users:
            raise AuthenticationError("No authenticated user")
        return self._users[self.current_user_id]

    async def verify_password(self, password: str) -> None:
        """Check ``password`` against the session user's credential."""
        user = await self.get_current_user()
        salt, expected = self._credentials[user.id]
        _, actual = hash_password(password, salt)
        if not hmac.compare_digest(expected, actual):
            logger.warning("password_verification_failed", user_id=user.id)
            raise AuthenticationError("Invalid password")
