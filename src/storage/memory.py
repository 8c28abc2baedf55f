"""In-memory store for development and testing."""

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog

from src.errors import DataAccessError, OrderNotFoundError
from src.orders.models import Order
from src.storage.base import Profile, ProfileRole, Store, WebhookSetting
from src.webhooks.templates import MessageTemplates

logger = structlog.get_logger(__name__)


class InMemoryStore(Store):
    """Dict-backed store.

    Rows are copied on the way in and out so callers never share state
    with the store. Every call yields to the event loop once, like a
    network round trip would.
    """

    def __init__(self) -> None:
        """Initialize in-memory storage."""
        self._orders: dict[str, Order] = {}
        self._profiles: dict[str, Profile] = {}
        self._webhooks: dict[str, WebhookSetting] = {}
        self._global_config: MessageTemplates | None = None

    # Orders

    async def read_order(self, order_id: str) -> Order | None:
        """Get an order by id."""
        await asyncio.sleep(0)
        order = self._orders.get(order_id)
        return order.model_copy() if order else None

    async def insert_order(self, order: Order) -> Order:
        """Insert a new order."""
        await asyncio.sleep(0)
        if order.id in self._orders:
            raise DataAccessError(
                f"Duplicate order id: {order.id}",
                operation="insert_order",
                details={"order_id": order.id},
            )
        self._orders[order.id] = order.model_copy()
        return order.model_copy()

    async def write_order(self, order_id: str, fields: dict[str, Any]) -> Order:
        """Update fields of an existing order."""
        await asyncio.sleep(0)
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        updated = order.model_copy(update=fields)
        self._orders[order_id] = updated
        return updated.model_copy()

    async def list_orders(self) -> list[Order]:
        """List all orders, newest first."""
        await asyncio.sleep(0)
        orders = [o.model_copy() for o in self._orders.values()]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    async def list_orders_for_user(self, user_id: str) -> list[Order]:
        """List one customer's orders, newest first."""
        return [o for o in await self.list_orders() if o.user_id == user_id]

    # Profiles

    def add_profile(self, profile: Profile) -> Profile:
        """Seed a profile row (auth signup is outside the console)."""
        self._profiles[profile.id] = profile.model_copy()
        return profile

    async def read_profile(self, user_id: str) -> Profile | None:
        """Get a profile by user id."""
        await asyncio.sleep(0)
        profile = self._profiles.get(user_id)
        return profile.model_copy() if profile else None

    async def find_customer_by_client_name(self, client_name: str) -> Profile | None:
        """Get the customer profile with the given client name."""
        await asyncio.sleep(0)
        for profile in self._profiles.values():
            if profile.role == ProfileRole.CUSTOMER and profile.client_name == client_name:
                return profile.model_copy()
        return None

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> Profile:
        """Update fields of a profile."""
        await asyncio.sleep(0)
        profile = self._profiles.get(user_id)
        if profile is None:
            raise DataAccessError(
                f"Profile not found for user: {user_id}",
                operation="update_profile",
                details={"user_id": user_id},
            )
        updated = profile.model_copy(update=fields)
        self._profiles[user_id] = updated
        return updated.model_copy()

    async def list_customer_profiles(self) -> list[Profile]:
        """List customers that have a client name, ordered by name."""
        await asyncio.sleep(0)
        customers = [
            p.model_copy()
            for p in self._profiles.values()
            if p.role == ProfileRole.CUSTOMER and p.client_name
        ]
        customers.sort(key=lambda p: p.client_name or "")
        return customers

    # Webhook settings

    async def list_webhook_settings(
        self,
        *,
        client_id: str | None = None,
        active_only: bool = False,
    ) -> list[WebhookSetting]:
        """List client webhook rows, newest first."""
        await asyncio.sleep(0)
        settings = [
            self._with_client_name(s)
            for s in self._webhooks.values()
            if (client_id is None or s.client_id == client_id)
            and (not active_only or s.is_active)
        ]
        settings.sort(key=lambda s: s.created_at, reverse=True)
        return settings

    def add_webhook_setting(self, setting: WebhookSetting) -> WebhookSetting:
        """Seed a client webhook row."""
        self._webhooks[setting.id] = setting.model_copy()
        return setting

    async def read_webhook_setting(self, setting_id: str) -> WebhookSetting | None:
        """Get a client webhook row by id."""
        await asyncio.sleep(0)
        setting = self._webhooks.get(setting_id)
        return self._with_client_name(setting) if setting else None

    async def insert_webhook_setting(self, setting: WebhookSetting) -> WebhookSetting:
        """Insert a client webhook row."""
        await asyncio.sleep(0)
        self._webhooks[setting.id] = setting.model_copy()
        return self._with_client_name(setting)

    async def update_webhook_setting(
        self,
        setting_id: str,
        fields: dict[str, Any],
    ) -> WebhookSetting:
        """Update fields of a client webhook row."""
        await asyncio.sleep(0)
        setting = self._webhooks.get(setting_id)
        if setting is None:
            raise DataAccessError(
                f"Webhook setting not found: {setting_id}",
                operation="update_webhook_setting",
                details={"setting_id": setting_id},
            )
        updated = setting.model_copy(update={**fields, "updated_at": datetime.now(UTC)})
        self._webhooks[setting_id] = updated
        return self._with_client_name(updated)

    async def delete_webhook_setting(self, setting_id: str) -> bool:
        """Delete a client webhook row."""
        await asyncio.sleep(0)
        return self._webhooks.pop(setting_id, None) is not None

    async def read_global_webhook_config(self) -> MessageTemplates | None:
        """Get the global message templates, if configured."""
        await asyncio.sleep(0)
        return self._global_config.model_copy() if self._global_config else None

    async def write_global_webhook_config(self, templates: MessageTemplates) -> MessageTemplates:
        """Create or replace the global message templates."""
        await asyncio.sleep(0)
        self._global_config = templates.model_copy()
        return templates

    def _with_client_name(self, setting: WebhookSetting) -> WebhookSetting:
        profile = self._profiles.get(setting.client_id)
        return setting.model_copy(
            update={"client_name": profile.client_name if profile else None}
        )
