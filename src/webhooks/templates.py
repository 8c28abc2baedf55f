"""Message templates and rendering.

Templates are plain strings with ``{token}`` placeholders. Rendering is
literal substring replacement: unknown tokens are left as they are, and
nothing else in the string is interpreted.
"""

import re
from datetime import datetime
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

from src.webhooks.events import NotificationEvent, NotificationEventType

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"

_TOKEN_PATTERN = re.compile(r"\{[a-z_]+\}")

DEFAULT_ORDER_CREATED_TEMPLATE = (
    "收到新订单啦! 订单号: {order_id}, 客户名: {client_name}, "
    "账户数量: {account_count}, 时区: {timezone}. {timestamp}. 赶紧处理吧~"
)
DEFAULT_ORDER_UPDATED_TEMPLATE = (
    "订单更新! 订单号: {order_id}, 状态由{nickname}从 {previous_status} "
    "更新为 {status}. {timestamp}"
)


class MessageTemplates(BaseModel):
    """The two template slots a destination can override.

    Serialized with the camelCase keys used by the persisted
    ``payload_config`` column.
    """

    model_config = ConfigDict(populate_by_name=True)

    order_created: str = Field(
        default="",
        alias="orderCreated",
        description="Template for order_created events",
    )
    order_updated: str = Field(
        default="",
        alias="orderUpdated",
        description="Template for order_updated events",
    )

    def template_for(self, event_type: NotificationEventType) -> str:
        """Get the template for an event type, falling back to the default slot."""
        if event_type == NotificationEventType.ORDER_CREATED:
            return self.order_created or DEFAULT_ORDER_CREATED_TEMPLATE
        return self.order_updated or DEFAULT_ORDER_UPDATED_TEMPLATE

    def to_config(self) -> dict[str, str]:
        """Serialize to the persisted ``payload_config`` shape."""
        return self.model_dump(by_alias=True)


DEFAULT_MESSAGE_TEMPLATES = MessageTemplates(
    order_created=DEFAULT_ORDER_CREATED_TEMPLATE,
    order_updated=DEFAULT_ORDER_UPDATED_TEMPLATE,
)


def resolve_templates(*candidates: MessageTemplates | None) -> MessageTemplates:
    """Pick the first configured template set, else the defaults.

    Args:
        candidates: Template sets in priority order (e.g. client, global).

    Returns:
        The first non-None candidate, or DEFAULT_MESSAGE_TEMPLATES.
    """
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return DEFAULT_MESSAGE_TEMPLATES


def format_timestamp(timestamp: datetime, tz: str = "UTC") -> str:
    """Format a timestamp as ``DD/MM/YYYY HH:MM:SS`` in the given zone."""
    return timestamp.astimezone(ZoneInfo(tz)).strftime(TIMESTAMP_FORMAT)


def render(
    template: str,
    event: NotificationEvent,
    *,
    nickname: str = "",
    tz: str = "UTC",
) -> str:
    """Fill a template with event fields.

    Args:
        template: Template string with ``{token}`` placeholders.
        event: Event supplying the values.
        nickname: Display name of the employee who made the change.
        tz: Zone used for ``{timestamp}``.

    Returns:
        Rendered message.
    """
    values = {
        "{order_id}": event.order_id,
        "{client_name}": event.client_name,
        "{account_count}": str(event.account_count),
        "{timezone}": event.timezone,
        "{timestamp}": format_timestamp(event.timestamp, tz),
        "{nickname}": nickname,
        "{previous_status}": event.previous_status.value if event.previous_status else "",
        "{status}": event.status.value,
    }
    # Single pass so substituted values are never re-expanded
    return _TOKEN_PATTERN.sub(lambda match: values.get(match.group(0), match.group(0)), template)


def render_message(
    event: NotificationEvent,
    templates: MessageTemplates,
    *,
    nickname: str = "",
    tz: str = "UTC",
) -> str:
    """Render the slot of ``templates`` that matches the event type."""
    return render(templates.template_for(event.event_type), event, nickname=nickname, tz=tz)
