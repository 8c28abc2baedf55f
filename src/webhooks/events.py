"""Notification event types and payload models.

This module defines the order-lifecycle events sent to webhook sinks
and the text-message body the sinks accept.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, model_validator

from src.orders.models import Order, OrderStatus


class NotificationEventType(str, Enum):
    """Supported notification event types."""

    ORDER_CREATED = "order_created"
    ORDER_UPDATED = "order_updated"


class DedupKey(NamedTuple):
    """Identity of a logical notification for in-flight collapsing."""

    event_type: NotificationEventType
    order_id: str
    status: OrderStatus


class NotificationEvent(BaseModel):
    """An order-lifecycle event. Not persisted.

    ``previous_status`` is present exactly when the event is an update.
    """

    event_type: NotificationEventType = Field(..., description="Event type")
    order_id: str = Field(..., description="Order identifier")
    client_name: str = Field(default="", description="Customer display name")
    account_count: int = Field(..., description="Accounts requested")
    timezone: str = Field(..., description="Requested account timezone")
    status: OrderStatus = Field(..., description="Status after the event")
    previous_status: OrderStatus | None = Field(
        default=None,
        description="Status before the event (order_updated only)",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event was dispatched",
    )

    @model_validator(mode="after")
    def _check_previous_status(self) -> "NotificationEvent":
        if self.event_type == NotificationEventType.ORDER_CREATED:
            if self.previous_status is not None:
                raise ValueError("previous_status must be absent for order_created")
        elif self.previous_status is None:
            raise ValueError("previous_status is required for order_updated")
        return self

    @property
    def dedup_key(self) -> DedupKey:
        """Key under which concurrent identical notifications collapse."""
        return DedupKey(self.event_type, self.order_id, self.status)

    def to_log_dict(self) -> dict[str, Any]:
        """Flatten to loggable keyword context."""
        return {
            "event_type": self.event_type.value,
            "order_id": self.order_id,
            "client_name": self.client_name,
            "status": self.status.value,
            "previous_status": self.previous_status.value if self.previous_status else None,
        }


def build_order_created_event(order: Order, *, timestamp: datetime | None = None) -> NotificationEvent:
    """Build an order_created event from a freshly inserted order.

    Args:
        order: The created order.
        timestamp: Optional event time (defaults to now).

    Returns:
        Notification event for the creation.
    """
    return NotificationEvent(
        event_type=NotificationEventType.ORDER_CREATED,
        order_id=order.id,
        client_name=order.client_name or "",
        account_count=order.account_count,
        timezone=order.timezone,
        status=order.status,
        timestamp=timestamp or datetime.now(UTC),
    )


def build_order_updated_event(
    order: Order,
    new_status: OrderStatus,
    *,
    timestamp: datetime | None = None,
) -> NotificationEvent:
    """Build an order_updated event.

    Args:
        order: The order as it was before the update.
        new_status: Status that was written.
        timestamp: Optional event time (defaults to now).

    Returns:
        Notification event for the status change.
    """
    return NotificationEvent(
        event_type=NotificationEventType.ORDER_UPDATED,
        order_id=order.id,
        client_name=order.client_name or "",
        account_count=order.account_count,
        timezone=order.timezone,
        status=new_status,
        previous_status=order.status,
        timestamp=timestamp or datetime.now(UTC),
    )


def build_text_message(text: str) -> dict[str, Any]:
    """Wrap rendered text in the body shape accepted by the chat sinks."""
    return {"msg_type": "text", "content": {"text": text}}
