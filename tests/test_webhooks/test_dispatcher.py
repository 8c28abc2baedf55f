"""Tests for the notification dispatcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.errors import ValidationError, WebhookDeliveryError
from src.orders.models import Order, OrderStatus
from src.storage.base import Profile, ProfileRole, WebhookSetting
from src.storage.memory import InMemoryStore
from src.webhooks.destinations import DestinationResolver
from src.webhooks.dispatcher import NotificationDispatcher
from src.webhooks.events import build_order_created_event, build_order_updated_event
from src.webhooks.templates import MessageTemplates, render_message
from src.webhooks.transport import WebhookDelivery, WebhookDeliveryStatus, WebhookTransport

GLOBAL_URL = "https://global.example.com/hook"
CLIENT_A = "https://acme.example.com/a"
CLIENT_B = "https://acme.example.com/b"


def delivered(url: str, body: dict) -> WebhookDelivery:
    return WebhookDelivery(
        url=url, payload=body, status=WebhookDeliveryStatus.SUCCESS, attempt_count=1
    )


def make_transport(failing: set[str] | None = None) -> MagicMock:
    """Transport double that fails for URLs in ``failing``."""
    failing = failing or set()

    async def post(url: str, body: dict) -> WebhookDelivery:
        if url in failing:
            raise WebhookDeliveryError(url, 3, "HTTP error! status: 500")
        return delivered(url, body)

    transport = MagicMock(spec=WebhookTransport)
    transport.post = AsyncMock(side_effect=post)
    return transport


def posted_urls(transport: MagicMock) -> list[str]:
    return [call.args[0] for call in transport.post.await_args_list]


@pytest.fixture
def order() -> Order:
    return Order(
        id="20240105093012QK",
        user_id="cust-1",
        client_name="Acme",
        account_count=5,
        timezone="GMT+08:00",
    )


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_profile(Profile(id="cust-1", role=ProfileRole.CUSTOMER, client_name="Acme"))
    store.add_webhook_setting(WebhookSetting(client_id="cust-1", webhook_url=CLIENT_A))
    store.add_webhook_setting(WebhookSetting(client_id="cust-1", webhook_url=CLIENT_B))
    return store


def make_dispatcher(store: InMemoryStore, transport: MagicMock, global_url: str = GLOBAL_URL):
    return NotificationDispatcher(
        store,
        resolver=DestinationResolver(store, global_url=global_url),
        transport=transport,
        display_timezone="UTC",
    )


class TestFanOut:
    """Tests for delivery to global and client destinations."""

    @pytest.mark.asyncio
    async def test_delivers_to_global_and_clients(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport)

        summary = await dispatcher.dispatch(build_order_created_event(order))

        assert posted_urls(transport)[0] == GLOBAL_URL
        assert sorted(posted_urls(transport)[1:]) == sorted([CLIENT_A, CLIENT_B])
        assert summary.global_outcome is not None
        assert summary.global_outcome.success is True
        assert summary.clients_succeeded == 2
        assert summary.clients_failed == 0
        assert summary.event_key == f"order_created_{order.id}_pending"

    @pytest.mark.asyncio
    async def test_global_failure_does_not_short_circuit_clients(
        self, store: InMemoryStore, order: Order
    ) -> None:
        transport = make_transport(failing={GLOBAL_URL})
        dispatcher = make_dispatcher(store, transport)

        await dispatcher.notify(build_order_created_event(order))

        assert sorted(posted_urls(transport)) == sorted([GLOBAL_URL, CLIENT_A, CLIENT_B])

    @pytest.mark.asyncio
    async def test_global_render_failure_does_not_block_clients(
        self, store: InMemoryStore, order: Order
    ) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport)
        calls = 0

        def flaky_render(*args, **kwargs) -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise KeyError("broken template")
            return render_message(*args, **kwargs)

        with patch("src.webhooks.dispatcher.render_message", side_effect=flaky_render):
            summary = await dispatcher.dispatch(build_order_created_event(order))

        assert summary.global_outcome is not None
        assert summary.global_outcome.success is False
        assert "broken template" in (summary.global_outcome.error or "")
        assert sorted(posted_urls(transport)) == sorted([CLIENT_A, CLIENT_B])
        assert summary.clients_succeeded == 2

    def test_unknown_display_timezone_rejected(self, store: InMemoryStore) -> None:
        with pytest.raises(ValidationError, match="Not/AZone"):
            NotificationDispatcher(store, transport=make_transport(), display_timezone="Not/AZone")

    @pytest.mark.asyncio
    async def test_one_client_failure_does_not_affect_others(
        self, store: InMemoryStore, order: Order
    ) -> None:
        transport = make_transport(failing={CLIENT_A})
        dispatcher = make_dispatcher(store, transport)

        summary = await dispatcher.dispatch(build_order_created_event(order))

        assert summary.clients_succeeded == 1
        assert summary.clients_failed == 1
        failed = [o for o in summary.client_outcomes if not o.success][0]
        assert failed.destination.url == CLIENT_A
        assert failed.attempts == 3
        assert "after 3 attempts" in (failed.error or "")

    @pytest.mark.asyncio
    async def test_no_global_url(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport, global_url="")

        summary = await dispatcher.dispatch(build_order_created_event(order))

        assert summary.global_outcome is None
        assert GLOBAL_URL not in posted_urls(transport)

    @pytest.mark.asyncio
    async def test_renders_with_client_then_global_templates(
        self, store: InMemoryStore, order: Order
    ) -> None:
        await store.write_global_webhook_config(
            MessageTemplates(order_created="G {order_id}", order_updated="G upd")
        )
        settings = await store.list_webhook_settings()
        override = next(s for s in settings if s.webhook_url == CLIENT_A)
        await store.update_webhook_setting(
            override.id, {"payload_config": MessageTemplates(order_created="A {client_name}")}
        )
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport)

        await dispatcher.dispatch(build_order_created_event(order))

        texts = {
            call.args[0]: call.args[1]["content"]["text"]
            for call in transport.post.await_args_list
        }
        assert texts[GLOBAL_URL] == f"G {order.id}"
        assert texts[CLIENT_A] == "A Acme"
        assert texts[CLIENT_B] == f"G {order.id}"

    @pytest.mark.asyncio
    async def test_updated_event_includes_nickname(self, store: InMemoryStore, order: Order) -> None:
        await store.write_global_webhook_config(
            MessageTemplates(order_updated="{nickname}: {previous_status}->{status}")
        )
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport)

        await dispatcher.dispatch(
            build_order_updated_event(order, OrderStatus.PROCESSING), nickname="Li"
        )

        body = transport.post.await_args_list[0].args[1]
        assert body == {"msg_type": "text", "content": {"text": "Li: pending->processing"}}

    @pytest.mark.asyncio
    async def test_notify_never_raises(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport)
        dispatcher._resolver.resolve = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]

        await dispatcher.notify(build_order_created_event(order))

        transport.post.assert_not_awaited()


class TestDeduplication:
    """Tests for in-flight collapsing of identical events."""

    @pytest.mark.asyncio
    async def test_concurrent_identical_events_fan_out_once(
        self, store: InMemoryStore, order: Order
    ) -> None:
        release = asyncio.Event()

        async def slow_post(url: str, body: dict) -> WebhookDelivery:
            await release.wait()
            return delivered(url, body)

        transport = MagicMock(spec=WebhookTransport)
        transport.post = AsyncMock(side_effect=slow_post)
        dispatcher = make_dispatcher(store, transport, global_url="")
        event = build_order_created_event(order)

        first = asyncio.create_task(dispatcher.dispatch(event))
        second = asyncio.create_task(dispatcher.dispatch(event))
        await asyncio.sleep(0.01)
        assert dispatcher.pending_count == 1

        release.set()
        summary_a, summary_b = await asyncio.gather(first, second)

        assert summary_a is summary_b
        assert transport.post.await_count == 2  # two client destinations, one fan-out
        assert dispatcher.pending_count == 0

    @pytest.mark.asyncio
    async def test_different_status_is_not_collapsed(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport, global_url="")

        await asyncio.gather(
            dispatcher.dispatch(build_order_updated_event(order, OrderStatus.PROCESSING)),
            dispatcher.dispatch(build_order_updated_event(order, OrderStatus.CANCELLED)),
        )

        assert transport.post.await_count == 4

    @pytest.mark.asyncio
    async def test_key_released_after_settling(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport, global_url="")
        event = build_order_created_event(order)

        await dispatcher.dispatch(event)
        await dispatcher.dispatch(event)

        assert transport.post.await_count == 4
        assert dispatcher.pending_count == 0


class TestBackgroundDispatch:
    """Tests for spawn() and shutdown()."""

    @pytest.mark.asyncio
    async def test_spawn_returns_immediately(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport()
        dispatcher = make_dispatcher(store, transport)

        task = dispatcher.spawn(build_order_created_event(order))

        assert not task.done()
        transport.post.assert_not_awaited()

        await dispatcher.shutdown()

        assert task.done()
        assert transport.post.await_count == 3

    @pytest.mark.asyncio
    async def test_spawned_failure_is_contained(self, store: InMemoryStore, order: Order) -> None:
        transport = make_transport(failing={GLOBAL_URL, CLIENT_A, CLIENT_B})
        dispatcher = make_dispatcher(store, transport)

        task = dispatcher.spawn(build_order_created_event(order))
        await dispatcher.shutdown()

        assert task.exception() is None
