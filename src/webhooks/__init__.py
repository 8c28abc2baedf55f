"""Webhook notifications for order lifecycle events.

This module provides:
- NotificationEvent: the event emitted on order creation and status change
- MessageTemplates and rendering of ``{token}`` templates
- WebhookTransport: JSON POST with bounded linear-backoff retries

The destination resolver, dispatcher and settings manager depend on the
storage layer and are imported from their own modules.
"""

from src.webhooks.events import (
    DedupKey,
    NotificationEvent,
    NotificationEventType,
    build_order_created_event,
    build_order_updated_event,
    build_text_message,
)
from src.webhooks.templates import (
    DEFAULT_MESSAGE_TEMPLATES,
    DEFAULT_ORDER_CREATED_TEMPLATE,
    DEFAULT_ORDER_UPDATED_TEMPLATE,
    MessageTemplates,
    format_timestamp,
    render,
    render_message,
    resolve_templates,
)
from src.webhooks.transport import (
    WebhookDelivery,
    WebhookDeliveryStatus,
    WebhookTransport,
    validate_webhook_url,
)

__all__ = [
    # Events
    "DedupKey",
    "NotificationEvent",
    "NotificationEventType",
    "build_order_created_event",
    "build_order_updated_event",
    "build_text_message",
    # Templates
    "DEFAULT_MESSAGE_TEMPLATES",
    "DEFAULT_ORDER_CREATED_TEMPLATE",
    "DEFAULT_ORDER_UPDATED_TEMPLATE",
    "MessageTemplates",
    "format_timestamp",
    "render",
    "render_message",
    "resolve_templates",
    # Transport
    "WebhookDelivery",
    "WebhookDeliveryStatus",
    "WebhookTransport",
    "validate_webhook_url",
]
