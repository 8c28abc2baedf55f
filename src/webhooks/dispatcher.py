"""Notification dispatcher.

Fans an order event out to the global destination and every active
client destination. Identical events in flight at the same time are
collapsed into one fan-out. Delivery failures are logged and never
reach the caller: notifications are best-effort.
"""

import asyncio
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field

from src.config import settings
from src.errors import ValidationError
from src.resilience.inflight import InFlight
from src.storage.base import Store
from src.webhooks.destinations import (
    ClientDestination,
    DestinationResolver,
    GlobalDestination,
    ResolvedDestinations,
    WebhookDestination,
)
from src.webhooks.events import DedupKey, NotificationEvent, build_text_message
from src.webhooks.templates import MessageTemplates, render_message
from src.webhooks.transport import WebhookDelivery, WebhookTransport

logger = structlog.get_logger(__name__)


class DeliveryOutcome(BaseModel):
    """Result of delivering one event to one destination."""

    destination: WebhookDestination
    success: bool
    attempts: int = 0
    error: str | None = None


class DispatchSummary(BaseModel):
    """Aggregate result of one fan-out."""

    event_key: str
    global_outcome: DeliveryOutcome | None = None
    client_outcomes: list[DeliveryOutcome] = Field(default_factory=list)

    @property
    def clients_succeeded(self) -> int:
        return sum(1 for o in self.client_outcomes if o.success)

    @property
    def clients_failed(self) -> int:
        return sum(1 for o in self.client_outcomes if not o.success)


class NotificationDispatcher:
    """Delivers order events to webhook destinations.

    Features:
    - Global destination first, then all clients concurrently
    - Per-destination template resolution (client, global, default)
    - Settle-all semantics: one failing destination never cancels another
    - In-flight deduplication on (event_type, order_id, status)
    - Fire-and-forget spawning with tracked background tasks
    """

    def __init__(
        self,
        store: Store,
        *,
        resolver: DestinationResolver | None = None,
        transport: WebhookTransport | None = None,
        display_timezone: str | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Backing store used to resolve destinations.
            resolver: Destination resolver (built from ``store`` if not provided).
            transport: Webhook transport (default retry settings if not provided).
            display_timezone: Zone for rendered timestamps.

        Raises:
            ValidationError: If the display timezone is unknown.
        """
        self._resolver = resolver or DestinationResolver(store)
        self._transport = transport or WebhookTransport()
        self._display_timezone = display_timezone or settings.DISPLAY_TIMEZONE
        try:
            ZoneInfo(self._display_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(
                f"Unknown display timezone: {self._display_timezone}",
                details={"display_timezone": self._display_timezone},
            ) from e
        self._in_flight: InFlight[DedupKey, DispatchSummary] = InFlight("notification")
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(component="notification_dispatcher")

    @property
    def pending_count(self) -> int:
        """Number of fan-outs currently in flight."""
        return len(self._in_flight)

    async def notify(self, event: NotificationEvent, *, nickname: str = "") -> None:
        """Deliver an event to all destinations. Never raises.

        A call for an event already in flight waits for that fan-out
        instead of starting another.

        Args:
            event: Event to deliver.
            nickname: Acting employee's display name for ``{nickname}``.
        """
        try:
            await self.dispatch(event, nickname=nickname)
        except Exception as e:
            self._logger.error(
                "notification_failed",
                error=str(e),
                **event.to_log_dict(),
            )

    async def dispatch(self, event: NotificationEvent, *, nickname: str = "") -> DispatchSummary:
        """Deliver an event and return the per-destination outcomes.

        Args:
            event: Event to deliver.
            nickname: Acting employee's display name.

        Returns:
            Summary of the (possibly shared) fan-out.
        """
        return await self._in_flight.run(
            event.dedup_key,
            lambda: self._fan_out(event, nickname),
        )

    def spawn(self, event: NotificationEvent, *, nickname: str = "") -> asyncio.Task[None]:
        """Start delivering an event in the background and return immediately.

        Args:
            event: Event to deliver.
            nickname: Acting employee's display name.

        Returns:
            The background task (callers are not expected to await it).
        """
        task = asyncio.create_task(self.notify(event, nickname=nickname))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def shutdown(self) -> None:
        """Wait for background notifications to finish."""
        if self._background_tasks:
            self._logger.info(
                "waiting_for_pending_notifications",
                count=len(self._background_tasks),
            )
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def _fan_out(self, event: NotificationEvent, nickname: str) -> DispatchSummary:
        key = event.dedup_key
        summary = DispatchSummary(
            event_key=f"{key.event_type.value}_{key.order_id}_{key.status.value}"
        )

        self._logger.info("dispatching_event", **event.to_log_dict())

        destinations: ResolvedDestinations = await self._resolver.resolve(event)

        if destinations.global_ is not None:
            summary.global_outcome = await self._deliver(
                destinations.global_,
                destinations.global_.resolved_templates(),
                event,
                nickname,
            )

        if destinations.clients:
            summary.client_outcomes = await self._deliver_to_clients(
                destinations.clients,
                destinations.global_templates,
                event,
                nickname,
            )

        self._logger.info(
            "event_dispatched",
            event_key=summary.event_key,
            global_success=summary.global_outcome.success if summary.global_outcome else None,
            client_total=len(summary.client_outcomes),
            client_succeeded=summary.clients_succeeded,
            client_failed=summary.clients_failed,
        )
        return summary

    async def _deliver_to_clients(
        self,
        clients: list[ClientDestination],
        global_templates: MessageTemplates | None,
        event: NotificationEvent,
        nickname: str,
    ) -> list[DeliveryOutcome]:
        results = await asyncio.gather(
            *(
                self._deliver(client, client.resolved_templates(global_templates), event, nickname)
                for client in clients
            ),
            return_exceptions=True,
        )

        outcomes: list[DeliveryOutcome] = []
        for client, result in zip(clients, results, strict=True):
            if isinstance(result, BaseException):
                outcomes.append(
                    DeliveryOutcome(destination=client, success=False, error=str(result))
                )
            else:
                outcomes.append(result)

        failed = [o for o in outcomes if not o.success]
        if failed:
            self._logger.error(
                "client_notifications_failed",
                order_id=event.order_id,
                failures=[
                    {
                        "url": o.destination.url,
                        "client_name": getattr(o.destination, "client_name", None),
                        "error": o.error,
                    }
                    for o in failed
                ],
            )
        return outcomes

    async def _deliver(
        self,
        destination: GlobalDestination | ClientDestination,
        templates: MessageTemplates,
        event: NotificationEvent,
        nickname: str,
    ) -> DeliveryOutcome:
        """Render and post to one destination, capturing any failure."""
        try:
            message = render_message(
                event, templates, nickname=nickname, tz=self._display_timezone
            )
            body: dict[str, Any] = build_text_message(message)

            self._logger.debug(
                "formatted_message",
                destination=destination.label,
                message=message,
            )

            delivery: WebhookDelivery = await self._transport.post(destination.url, body)
        except Exception as e:
            self._logger.error(
                "destination_delivery_failed",
                destination=destination.label,
                url=destination.url,
                order_id=event.order_id,
                event_type=event.event_type.value,
                attempts=getattr(e, "attempts", None),
                error=str(e),
            )
            return DeliveryOutcome(
                destination=destination,
                success=False,
                attempts=getattr(e, "attempts", 0),
                error=str(e),
            )

        return DeliveryOutcome(
            destination=destination,
            success=True,
            attempts=delivery.attempt_count,
        )
