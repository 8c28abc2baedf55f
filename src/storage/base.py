"""Backing-store interface and the records it holds.

The hosted backend owns persistence and row-level authorization. The
order console only sees the operations below; any failure surfaces as
a DataAccessError and is never retried at this layer.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.orders.models import Order
from src.webhooks.templates import MessageTemplates


class ProfileRole(str, Enum):
    """Role of a console user."""

    CUSTOMER = "customer"
    EMPLOYEE = "employee"
    SUPER_ADMIN = "super_admin"


STAFF_ROLES = frozenset({ProfileRole.EMPLOYEE, ProfileRole.SUPER_ADMIN})


class Profile(BaseModel):
    """A console user's profile row."""

    id: str = Field(..., description="User id (matches the auth user)")
    email: str = Field(default="", description="Login email")
    role: ProfileRole = Field(default=ProfileRole.CUSTOMER, description="User role")
    nickname: str | None = Field(default=None, description="Employee display name")
    client_name: str | None = Field(default=None, description="Customer display name")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_staff(self) -> bool:
        """Whether the user may triage orders."""
        return self.role in STAFF_ROLES


class WebhookSetting(BaseModel):
    """A per-client webhook row."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Setting identifier",
    )
    client_id: str = Field(..., description="Customer profile the webhook targets")
    webhook_url: str = Field(..., description="Destination URL")
    is_active: bool = Field(default=True, description="Whether the webhook receives events")
    payload_config: MessageTemplates | None = Field(
        default=None,
        description="Template override for this client",
    )
    client_name: str | None = Field(
        default=None,
        description="Customer display name, joined from the profile",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Store:
    """Abstract base class for the backing store."""

    # Orders

    async def read_order(self, order_id: str) -> Order | None:
        """Get an order by id."""
        raise NotImplementedError

    async def insert_order(self, order: Order) -> Order:
        """Insert a new order."""
        raise NotImplementedError

    async def write_order(self, order_id: str, fields: dict[str, Any]) -> Order:
        """Update fields of an existing order and return the stored row."""
        raise NotImplementedError

    async def list_orders(self) -> list[Order]:
        """List all orders, newest first."""
        raise NotImplementedError

    async def list_orders_for_user(self, user_id: str) -> list[Order]:
        """List one customer's orders, newest first."""
        raise NotImplementedError

    # Profiles

    async def read_profile(self, user_id: str) -> Profile | None:
        """Get a profile by user id."""
        raise NotImplementedError

    async def find_customer_by_client_name(self, client_name: str) -> Profile | None:
        """Get the customer profile with the given client name."""
        raise NotImplementedError

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> Profile:
        """Update fields of a profile."""
        raise NotImplementedError

    async def list_customer_profiles(self) -> list[Profile]:
        """List customers that have a client name, ordered by name."""
        raise NotImplementedError

    # Webhook settings

    async def list_webhook_settings(
        self,
        *,
        client_id: str | None = None,
        active_only: bool = False,
    ) -> list[WebhookSetting]:
        """List client webhook rows, newest first."""
        raise NotImplementedError

    async def read_webhook_setting(self, setting_id: str) -> WebhookSetting | None:
        """Get a client webhook row by id."""
        raise NotImplementedError

    async def insert_webhook_setting(self, setting: WebhookSetting) -> WebhookSetting:
        """Insert a client webhook row."""
        raise NotImplementedError

    async def update_webhook_setting(
        self,
        setting_id: str,
        fields: dict[str, Any],
    ) -> WebhookSetting:
        """Update fields of a client webhook row."""
        raise NotImplementedError

    async def delete_webhook_setting(self, setting_id: str) -> bool:
        """Delete a client webhook row. Returns False if it did not exist."""
        raise NotImplementedError

    async def read_global_webhook_config(self) -> MessageTemplates | None:
        """Get the global message templates, if configured."""
        raise NotImplementedError

    async def write_global_webhook_config(self, templates: MessageTemplates) -> MessageTemplates:
        """Create or replace the global message templates."""
        raise NotImplementedError

    async def read_active_client_webhooks(self, client_name: str) -> list[WebhookSetting]:
        """Get the active webhooks of the customer with ``client_name``.

        Returns an empty list when the name is empty or matches no customer.
        """
        if not client_name:
            return []
        customer = await self.find_customer_by_client_name(client_name)
        if customer is None:
            return []
        settings = await self.list_webhook_settings(client_id=customer.id, active_only=True)
        return [s.model_copy(update={"client_name": customer.client_name}) for s in settings]

    async def close(self) -> None:
        """Release any held resources."""
