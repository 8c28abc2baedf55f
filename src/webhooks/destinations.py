"""Webhook destinations and their resolution for an event.

Every event goes to the global destination (when a URL is configured)
and to each active webhook of the customer named in the event.
"""

import asyncio
from typing import Annotated, Literal

import structlog
from pydantic import BaseModel, Field

from src.config import settings
from src.storage.base import Store, WebhookSetting
from src.webhooks.events import NotificationEvent
from src.webhooks.templates import MessageTemplates, resolve_templates

logger = structlog.get_logger(__name__)


class GlobalDestination(BaseModel):
    """The process-wide sink that receives every event."""

    kind: Literal["global"] = "global"
    url: str = Field(..., description="Sink URL, fixed at deploy time")
    templates: MessageTemplates | None = Field(
        default=None,
        description="Admin-configured templates (None = defaults)",
    )

    @property
    def label(self) -> str:
        return "global"

    def resolved_templates(self) -> MessageTemplates:
        """Templates to render with: global config, else defaults."""
        return resolve_templates(self.templates)


class ClientDestination(BaseModel):
    """A customer's own webhook."""

    kind: Literal["client"] = "client"
    id: str = Field(..., description="Webhook setting id")
    client_id: str = Field(..., description="Owning customer profile id")
    client_name: str | None = Field(default=None, description="Customer display name")
    url: str = Field(..., description="Destination URL")
    is_active: bool = Field(default=True)
    templates: MessageTemplates | None = Field(
        default=None,
        description="Client template override",
    )

    @property
    def label(self) -> str:
        return f"client:{self.id}"

    @classmethod
    def from_setting(cls, setting: WebhookSetting) -> "ClientDestination":
        """Build a destination from a stored webhook row."""
        return cls(
            id=setting.id,
            client_id=setting.client_id,
            client_name=setting.client_name,
            url=setting.webhook_url,
            is_active=setting.is_active,
            templates=setting.payload_config,
        )

    def resolved_templates(self, global_templates: MessageTemplates | None) -> MessageTemplates:
        """Templates to render with: own override, else global, else defaults."""
        return resolve_templates(self.templates, global_templates)


WebhookDestination = Annotated[
    GlobalDestination | ClientDestination,
    Field(discriminator="kind"),
]


class ResolvedDestinations(BaseModel):
    """Targets for one event."""

    global_: GlobalDestination | None = Field(default=None, alias="global")
    clients: list[ClientDestination] = Field(default_factory=list)
    global_templates: MessageTemplates | None = Field(
        default=None,
        description="Global template config, used as the client fallback",
    )

    model_config = {"populate_by_name": True}

    @property
    def count(self) -> int:
        return len(self.clients) + (1 if self.global_ else 0)


class DestinationResolver:
    """Finds the destinations an event should be delivered to.

    Lookup failures never raise: a missing client webhook is not fatal
    to the order operation that produced the event.
    """

    def __init__(self, store: Store, *, global_url: str | None = None) -> None:
        """Initialize the resolver.

        Args:
            store: Backing store for template config and client webhooks.
            global_url: Global sink URL (defaults to GLOBAL_WEBHOOK_URL).
        """
        self._store = store
        self._global_url = global_url if global_url is not None else settings.GLOBAL_WEBHOOK_URL
        self._logger = logger.bind(component="destination_resolver")

    async def resolve(self, event: NotificationEvent) -> ResolvedDestinations:
        """Resolve the global and client destinations for an event.

        The global template config and the client webhooks are fetched
        concurrently.
        """
        global_templates, client_settings = await asyncio.gather(
            self._load_global_templates(),
            self._load_client_webhooks(event.client_name),
        )

        global_destination = (
            GlobalDestination(url=self._global_url, templates=global_templates)
            if self._global_url
            else None
        )
        clients = [
            ClientDestination.from_setting(setting)
            for setting in client_settings
            if setting.is_active
        ]

        self._logger.info(
            "destinations_resolved",
            order_id=event.order_id,
            has_global=global_destination is not None,
            has_global_templates=global_templates is not None,
            client_count=len(clients),
        )

        return ResolvedDestinations(
            global_=global_destination,
            clients=clients,
            global_templates=global_templates,
        )

    async def _load_global_templates(self) -> MessageTemplates | None:
        try:
            return await self._store.read_global_webhook_config()
        except Exception as e:
            self._logger.warning("global_config_unavailable", error=str(e))
            return None

    async def _load_client_webhooks(self, client_name: str) -> list[WebhookSetting]:
        if not client_name:
            self._logger.warning("no_client_name_for_webhook_lookup")
            return []
        try:
            webhooks = await self._store.read_active_client_webhooks(client_name)
        except Exception as e:
            self._logger.error(
                "client_webhook_lookup_failed",
                client_name=client_name,
                error=str(e),
            )
            return []
        if not webhooks:
            self._logger.info("no_active_client_webhooks", client_name=client_name)
        return webhooks
