"""Tests for the webhook settings API routes."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.container import ServiceContainer
from src.api.routes import create_app
from src.auth.base import InMemoryAuthProvider
from src.config import Settings
from src.storage.base import Profile, ProfileRole, WebhookSetting
from src.storage.memory import InMemoryStore
from src.webhooks.templates import DEFAULT_ORDER_CREATED_TEMPLATE
from src.webhooks.transport import WebhookTransport

URL = "https://hooks.example.com/acme"


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_profile(Profile(id="cust-1", role=ProfileRole.CUSTOMER, client_name="Acme"))
    store.add_profile(Profile(id="emp-1", role=ProfileRole.EMPLOYEE, nickname="Li"))
    store.add_profile(Profile(id="admin-1", role=ProfileRole.SUPER_ADMIN))
    return store


@pytest.fixture
def transport() -> MagicMock:
    transport = MagicMock(spec=WebhookTransport)
    transport.probe = AsyncMock(return_value=True)
    return transport


@pytest.fixture
def client(store: InMemoryStore, transport: MagicMock):
    sessions = {
        user_id: InMemoryAuthProvider(user_id) for user_id in ("cust-1", "emp-1", "admin-1")
    }
    for user_id, auth in sessions.items():
        auth.add_user(user_id, f"{user_id}@example.com", "pw")

    container = ServiceContainer.build(
        store,
        lambda token: sessions.get(token or "") or InMemoryAuthProvider(),
        transport=transport,
        config=Settings(),
    )
    with TestClient(create_app(container)) as client:
        yield client


ADMIN = {"Authorization": "Bearer admin-1"}


class TestPermissions:
    """Only super admins manage webhooks."""

    @pytest.mark.parametrize("user_id", ["cust-1", "emp-1"])
    def test_non_admin_denied(self, client: TestClient, user_id: str) -> None:
        response = client.get("/webhooks/clients", headers={"Authorization": f"Bearer {user_id}"})

        assert response.status_code == 403

    def test_anonymous_denied(self, client: TestClient) -> None:
        response = client.get("/webhooks/clients")

        assert response.status_code == 401


class TestClientWebhooks:
    """Tests for /webhooks/clients."""

    def test_create_probes_endpoint(self, client: TestClient, transport: MagicMock) -> None:
        response = client.post(
            "/webhooks/clients",
            json={"client_id": "cust-1", "webhook_url": URL},
            headers=ADMIN,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["webhook_url"] == URL
        assert data["is_active"] is True
        assert data["client_name"] == "Acme"
        transport.probe.assert_awaited_once()
        assert transport.probe.await_args.args[0] == URL

    def test_unreachable_endpoint_rejected(
        self, client: TestClient, transport: MagicMock, store: InMemoryStore
    ) -> None:
        transport.probe.return_value = False

        response = client.post(
            "/webhooks/clients",
            json={"client_id": "cust-1", "webhook_url": URL},
            headers=ADMIN,
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "WebhookValidationError"
        assert asyncio.run(store.list_webhook_settings()) == []

    def test_malformed_url_rejected(self, client: TestClient, transport: MagicMock) -> None:
        response = client.post(
            "/webhooks/clients",
            json={"client_id": "cust-1", "webhook_url": "not a url"},
            headers=ADMIN,
        )

        assert response.status_code == 400
        transport.probe.assert_not_awaited()

    def test_list_update_delete(self, client: TestClient, store: InMemoryStore) -> None:
        setting = store.add_webhook_setting(WebhookSetting(client_id="cust-1", webhook_url=URL))

        listed = client.get("/webhooks/clients", headers=ADMIN).json()
        assert [s["id"] for s in listed] == [setting.id]

        response = client.patch(
            f"/webhooks/clients/{setting.id}",
            json={"is_active": False},
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        assert client.delete(f"/webhooks/clients/{setting.id}", headers=ADMIN).status_code == 204
        assert client.delete(f"/webhooks/clients/{setting.id}", headers=ADMIN).status_code == 404

    def test_payload_config(self, client: TestClient, store: InMemoryStore) -> None:
        setting = store.add_webhook_setting(WebhookSetting(client_id="cust-1", webhook_url=URL))

        response = client.put(
            f"/webhooks/clients/{setting.id}/payload",
            json={"payload_config": {"orderCreated": "New order {order_id}", "orderUpdated": ""}},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert response.json()["payload_config"]["orderCreated"] == "New order {order_id}"

    def test_customers(self, client: TestClient) -> None:
        response = client.get("/webhooks/customers", headers=ADMIN)

        assert [c["id"] for c in response.json()] == ["cust-1"]


class TestGlobalTemplates:
    """Tests for /webhooks/global."""

    def test_defaults_when_unset(self, client: TestClient) -> None:
        response = client.get("/webhooks/global", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["orderCreated"] == DEFAULT_ORDER_CREATED_TEMPLATE

    def test_replace(self, client: TestClient) -> None:
        body = {"orderCreated": "A {order_id}", "orderUpdated": "B {status}"}

        assert client.put("/webhooks/global", json=body, headers=ADMIN).status_code == 200
        assert client.get("/webhooks/global", headers=ADMIN).json() == body
