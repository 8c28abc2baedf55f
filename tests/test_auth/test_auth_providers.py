"""Tests for authentication providers."""

import json

import httpx
import pytest

from src.auth.base import InMemoryAuthProvider, hash_password
from src.auth.rest import RestAuthProvider
from src.errors import AuthenticationError


class TestHashPassword:
    """Tests for hash_password()."""

    def test_same_salt_same_digest(self) -> None:
        salt, digest = hash_password("secret")

        assert hash_password("secret", salt) == (salt, digest)
        assert hash_password("other", salt)[1] != digest


class TestInMemoryAuthProvider:
    """Tests for InMemoryAuthProvider."""

    @pytest.mark.asyncio
    async def test_current_user(self) -> None:
        auth = InMemoryAuthProvider("u1")
        auth.add_user("u1", "u1@example.com", "pw")

        user = await auth.get_current_user()

        assert user.id == "u1"
        assert user.email == "u1@example.com"

    @pytest.mark.asyncio
    async def test_signed_out(self) -> None:
        auth = InMemoryAuthProvider()

        with pytest.raises(AuthenticationError):
            await auth.get_current_user()

    @pytest.mark.asyncio
    async def test_verify_password(self) -> None:
        auth = InMemoryAuthProvider("u1")
        auth.add_user("u1", "u1@example.com", "pw")

        await auth.verify_password("pw")
        with pytest.raises(AuthenticationError, match="Invalid password"):
            await auth.verify_password("wrong")

    @pytest.mark.asyncio
    async def test_sign_in_as(self) -> None:
        auth = InMemoryAuthProvider("u1")
        auth.add_user("u1", "u1@example.com", "pw")
        auth.add_user("u2", "u2@example.com", "pw2")

        auth.sign_in_as("u2")

        assert (await auth.get_current_user()).id == "u2"


def make_provider(
    handler,
    access_token: str | None = "session-token",
) -> RestAuthProvider:
    return RestAuthProvider(
        access_token,
        base_url="https://backend.example.com",
        api_key="anon-key",
        http_transport=httpx.MockTransport(handler),
    )


class TestRestAuthProvider:
    """Tests for RestAuthProvider."""

    @pytest.mark.asyncio
    async def test_current_user_fetched_once(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "u1", "email": "u1@example.com"})

        auth = make_provider(handler)

        first = await auth.get_current_user()
        second = await auth.get_current_user()

        assert first == second
        assert first.id == "u1"
        assert len(requests) == 1
        assert requests[0].url.path == "/auth/v1/user"
        assert requests[0].headers["Authorization"] == "Bearer session-token"
        assert requests[0].headers["apikey"] == "anon-key"

    @pytest.mark.asyncio
    async def test_no_token(self) -> None:
        auth = make_provider(lambda request: httpx.Response(200, json={}), access_token=None)

        with pytest.raises(AuthenticationError):
            await auth.get_current_user()

    @pytest.mark.asyncio
    async def test_rejected_token(self) -> None:
        auth = make_provider(lambda request: httpx.Response(401, json={"msg": "expired"}))

        with pytest.raises(AuthenticationError):
            await auth.get_current_user()

    @pytest.mark.asyncio
    async def test_backend_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        auth = make_provider(handler)

        with pytest.raises(AuthenticationError) as exc_info:
            await auth.get_current_user()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_verify_password(self) -> None:
        token_requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/auth/v1/user":
                return httpx.Response(200, json={"id": "u1", "email": "u1@example.com"})
            token_requests.append(request)
            body = json.loads(request.content)
            if body["password"] == "pw":
                return httpx.Response(200, json={"access_token": "fresh"})
            return httpx.Response(400, json={"error": "invalid_grant"})

        auth = make_provider(handler)

        await auth.verify_password("pw")
        with pytest.raises(AuthenticationError, match="Invalid password"):
            await auth.verify_password("wrong")

        assert token_requests[0].url.params["grant_type"] == "password"
        assert json.loads(token_requests[0].content)["email"] == "u1@example.com"
