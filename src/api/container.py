"""Process-wide services shared by every request.

Controllers are built per request around the caller's AuthProvider;
the store, dispatcher, profile cache and create guard live here so that
deduplication and caching span sessions.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from src.auth.base import AuthProvider
from src.auth.rest import RestAuthProvider
from src.config import Settings, settings
from src.orders.cache import ProfileCache
from src.orders.models import Order
from src.orders.service import CreateKey, OrderLifecycleController
from src.resilience.inflight import InFlight
from src.storage.base import Store
from src.storage.rest import RestStore
from src.webhooks.destinations import DestinationResolver
from src.webhooks.dispatcher import NotificationDispatcher
from src.webhooks.manager import WebhookSettingsManager
from src.webhooks.transport import WebhookTransport

logger = structlog.get_logger(__name__)

AuthFactory = Callable[[str | None], AuthProvider]


@dataclass
class ServiceContainer:
    """Shared services and per-session factories."""

    store: Store
    dispatcher: NotificationDispatcher
    transport: WebhookTransport
    auth_factory: AuthFactory
    profile_cache: ProfileCache = field(default_factory=ProfileCache)
    create_guard: InFlight[CreateKey, Order] = field(
        default_factory=lambda: InFlight("order_create")
    )

    def auth_for(self, access_token: str | None) -> AuthProvider:
        """Build the AuthProvider for a bearer token (None when absent)."""
        return self.auth_factory(access_token)

    def order_controller(self, auth: AuthProvider) -> OrderLifecycleController:
        """Build a lifecycle controller for one session."""
        return OrderLifecycleController(
            self.store,
            auth,
            self.dispatcher,
            profile_cache=self.profile_cache,
            create_guard=self.create_guard,
        )

    def webhook_manager(self, auth: AuthProvider) -> WebhookSettingsManager:
        """Build a webhook settings manager for one session."""
        return WebhookSettingsManager(self.store, auth, transport=self.transport)

    async def close(self) -> None:
        """Drain pending notifications and release the store."""
        await self.dispatcher.shutdown()
        await self.store.close()

    @classmethod
    def build(
        cls,
        store: Store,
        auth_factory: AuthFactory,
        *,
        transport: WebhookTransport | None = None,
        config: Settings | None = None,
    ) -> "ServiceContainer":
        """Wire the dispatcher and cache around ``store``."""
        config = config or settings
        transport = transport or WebhookTransport(
            max_attempts=config.WEBHOOK_MAX_ATTEMPTS,
            base_delay=config.WEBHOOK_RETRY_DELAY_SECONDS,
            timeout=config.WEBHOOK_TIMEOUT_SECONDS,
        )
        dispatcher = NotificationDispatcher(
            store,
            resolver=DestinationResolver(store, global_url=config.GLOBAL_WEBHOOK_URL),
            transport=transport,
            display_timezone=config.DISPLAY_TIMEZONE,
        )
        return cls(
            store=store,
            dispatcher=dispatcher,
            transport=transport,
            auth_factory=auth_factory,
            profile_cache=ProfileCache(config.PROFILE_CACHE_TTL_SECONDS),
        )

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ServiceContainer":
        """Build a container backed by the hosted backend."""
        config = config or settings
        logger.info("service_container_created", backend_url=config.BACKEND_URL)
        return cls.build(
            RestStore(base_url=config.BACKEND_URL, api_key=config.BACKEND_ANON_KEY),
            lambda token: RestAuthProvider(
                token,
                base_url=config.BACKEND_URL,
                api_key=config.BACKEND_ANON_KEY,
            ),
            config=config,
        )
