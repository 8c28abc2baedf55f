"""Authentication provider backed by the hosted backend's auth API."""

from typing import Any

import httpx
import structlog

from src.auth.base import AuthProvider, AuthUser
from src.config import settings
from src.errors import AuthenticationError

logger = structlog.get_logger(__name__)


class RestAuthProvider(AuthProvider):
    """Resolves the session user from an access token.

    Password verification signs in again with the user's email and the
    supplied password; the resulting session is discarded.
    """

    def __init__(
        self,
        access_token: str | None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the provider.

        Args:
            access_token: Session token, None for signed out.
            base_url: Backend base URL (defaults to BACKEND_URL).
            api_key: Public API key (defaults to BACKEND_ANON_KEY).
            http_transport: Optional httpx transport (e.g. MockTransport).
            timeout: Request timeout in seconds.
        """
        self.access_token = access_token
        self.base_url = (base_url or settings.BACKEND_URL).rstrip("/")
        self.api_key = api_key or settings.BACKEND_ANON_KEY or ""
        self._http_transport = http_transport
        self._timeout = timeout
        self._user: AuthUser | None = None
        self._logger = logger.bind(component="rest_auth")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {"apikey": self.api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            async with httpx.AsyncClient(
                base_url=f"{self.base_url}/auth/v1",
                timeout=self._timeout,
                transport=self._http_transport,
            ) as client:
                return await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("auth_request_failed", path=path, error=str(e))
            raise AuthenticationError("Authentication service unavailable") from e

    async def get_current_user(self) -> AuthUser:
        """Get the session's user, fetched once per provider."""
        if self._user is not None:
            return self._user
        if not self.access_token:
            raise AuthenticationError("No authenticated user")

        response = await self._request("GET", "/user", token=self.access_token)
        if not response.is_success:
            self._logger.warning("session_rejected", status_code=response.status_code)
            raise AuthenticationError("No authenticated user")

        data = response.json()
        self._user = AuthUser(id=data["id"], email=data.get("email") or "")
        return self._user

    async def verify_password(self, password: str) -> None:
        """Check ``password`` by signing in with the session user's email."""
        user = await self.get_current_user()
        if not user.email:
            raise AuthenticationError("No authenticated user")

        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": user.email, "password": password},
        )
        if not response.is_success:
            self._logger.warning("password_verification_failed", user_id=user.id)
            raise AuthenticationError("Invalid password")
