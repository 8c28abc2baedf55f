"""Tests for the in-memory store."""

from datetime import UTC, datetime, timedelta

import pytest

from src.errors import DataAccessError, OrderNotFoundError
from src.orders.models import Order, OrderStatus
from src.storage.base import Profile, ProfileRole, WebhookSetting
from src.storage.memory import InMemoryStore
from src.webhooks.templates import MessageTemplates

T0 = datetime(2024, 1, 5, 9, 0, tzinfo=UTC)


def make_order(order_id: str, user_id: str = "cust-1", minutes: int = 0) -> Order:
    return Order(
        id=order_id,
        user_id=user_id,
        account_count=1,
        timezone="GMT+00:00",
        created_at=T0 + timedelta(minutes=minutes),
    )


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_profile(Profile(id="cust-1", role=ProfileRole.CUSTOMER, client_name="Acme"))
    store.add_profile(Profile(id="cust-2", role=ProfileRole.CUSTOMER, client_name="Beta"))
    store.add_profile(Profile(id="cust-3", role=ProfileRole.CUSTOMER))
    store.add_profile(Profile(id="emp-1", role=ProfileRole.EMPLOYEE, client_name="Acme"))
    return store


class TestOrders:
    """Tests for order rows."""

    @pytest.mark.asyncio
    async def test_insert_and_read(self, store: InMemoryStore) -> None:
        order = make_order("A")
        await store.insert_order(order)

        assert await store.read_order("A") == order
        assert await store.read_order("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store: InMemoryStore) -> None:
        await store.insert_order(make_order("A"))

        with pytest.raises(DataAccessError) as exc_info:
            await store.insert_order(make_order("A"))

        assert exc_info.value.operation == "insert_order"

    @pytest.mark.asyncio
    async def test_rows_are_copied(self, store: InMemoryStore) -> None:
        order = make_order("A")
        await store.insert_order(order)
        order.status = OrderStatus.CANCELLED

        assert (await store.read_order("A")).status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_write(self, store: InMemoryStore) -> None:
        await store.insert_order(make_order("A"))

        updated = await store.write_order("A", {"status": OrderStatus.PROCESSING})

        assert updated.status == OrderStatus.PROCESSING
        with pytest.raises(OrderNotFoundError):
            await store.write_order("missing", {"status": OrderStatus.PROCESSING})

    @pytest.mark.asyncio
    async def test_listing_newest_first(self, store: InMemoryStore) -> None:
        await store.insert_order(make_order("old", minutes=0))
        await store.insert_order(make_order("new", minutes=5))
        await store.insert_order(make_order("other", user_id="cust-2", minutes=2))

        assert [o.id for o in await store.list_orders()] == ["new", "other", "old"]
        assert [o.id for o in await store.list_orders_for_user("cust-1")] == ["new", "old"]


class TestProfiles:
    """Tests for profile rows."""

    @pytest.mark.asyncio
    async def test_find_customer_ignores_staff(self, store: InMemoryStore) -> None:
        customer = await store.find_customer_by_client_name("Acme")

        assert customer.id == "cust-1"
        assert await store.find_customer_by_client_name("Nobody") is None

    @pytest.mark.asyncio
    async def test_list_customers_with_names(self, store: InMemoryStore) -> None:
        customers = await store.list_customer_profiles()

        assert [c.client_name for c in customers] == ["Acme", "Beta"]

    @pytest.mark.asyncio
    async def test_update_missing_profile(self, store: InMemoryStore) -> None:
        with pytest.raises(DataAccessError):
            await store.update_profile("ghost", {"client_name": "X"})


class TestWebhookSettings:
    """Tests for webhook setting rows."""

    @pytest.mark.asyncio
    async def test_client_name_is_joined(self, store: InMemoryStore) -> None:
        setting = await store.insert_webhook_setting(
            WebhookSetting(client_id="cust-1", webhook_url="https://a.example.com/hook")
        )

        assert setting.client_name == "Acme"
        assert (await store.read_webhook_setting(setting.id)).client_name == "Acme"

    @pytest.mark.asyncio
    async def test_active_client_webhooks(self, store: InMemoryStore) -> None:
        store.add_webhook_setting(
            WebhookSetting(client_id="cust-1", webhook_url="https://a.example.com/1")
        )
        store.add_webhook_setting(
            WebhookSetting(client_id="cust-1", webhook_url="https://a.example.com/2", is_active=False)
        )
        store.add_webhook_setting(
            WebhookSetting(client_id="cust-2", webhook_url="https://b.example.com/1")
        )

        webhooks = await store.read_active_client_webhooks("Acme")

        assert [w.webhook_url for w in webhooks] == ["https://a.example.com/1"]
        assert await store.read_active_client_webhooks("") == []
        assert await store.read_active_client_webhooks("Nobody") == []

    @pytest.mark.asyncio
    async def test_update_and_delete(self, store: InMemoryStore) -> None:
        setting = store.add_webhook_setting(
            WebhookSetting(client_id="cust-1", webhook_url="https://a.example.com/1")
        )

        updated = await store.update_webhook_setting(setting.id, {"is_active": False})
        assert updated.is_active is False
        assert updated.updated_at >= setting.updated_at

        assert await store.delete_webhook_setting(setting.id) is True
        assert await store.delete_webhook_setting(setting.id) is False
        with pytest.raises(DataAccessError):
            await store.update_webhook_setting(setting.id, {"is_active": True})

    @pytest.mark.asyncio
    async def test_global_config(self, store: InMemoryStore) -> None:
        assert await store.read_global_webhook_config() is None

        templates = MessageTemplates(order_created="new {order_id}", order_updated="upd {order_id}")
        await store.write_global_webhook_config(templates)

        assert await store.read_global_webhook_config() == templates
