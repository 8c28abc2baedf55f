"""Webhook settings administration.

Provides management of per-client webhook destinations and the global
message templates. Only super admins may change webhook settings.
"""

import structlog

from src.auth.base import AuthProvider
from src.errors import DataAccessError, PermissionDeniedError, WebhookValidationError
from src.storage.base import Profile, ProfileRole, Store, WebhookSetting
from src.webhooks.events import build_text_message
from src.webhooks.templates import MessageTemplates, resolve_templates
from src.webhooks.transport import WebhookTransport, validate_webhook_url

logger = structlog.get_logger(__name__)

TEST_MESSAGE_TEXT = "Webhook test message"


class WebhookSettingsManager:
    """Manages client webhook rows and the global template config.

    New or changed URLs are checked with a single test POST before they
    are saved, so a setting never points at an endpoint that was
    unreachable when it was entered.
    """

    def __init__(
        self,
        store: Store,
        auth: AuthProvider,
        *,
        transport: WebhookTransport | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Backing store.
            auth: The session's authentication provider.
            transport: Transport used for test posts.
        """
        self._store = store
        self._auth = auth
        self._transport = transport or WebhookTransport()
        self._logger = logger.bind(component="webhook_settings")

    async def _require_super_admin(self) -> Profile:
        user = await self._auth.get_current_user()
        profile = await self._store.read_profile(user.id)
        if profile is None or profile.role != ProfileRole.SUPER_ADMIN:
            self._logger.warning("webhook_admin_denied", user_id=user.id)
            raise PermissionDeniedError(
                "Only super admins can manage webhooks",
                details={"user_id": user.id},
            )
        return profile

    async def _check_endpoint(self, url: str) -> None:
        validate_webhook_url(url)
        if not await self._transport.probe(url, build_text_message(TEST_MESSAGE_TEXT)):
            self._logger.warning("webhook_endpoint_unreachable", url=url)
            raise WebhookValidationError(
                "Unable to reach webhook endpoint. Please verify the URL and try again.",
                details={"url": url},
            )

    async def list_customer_profiles(self) -> list[Profile]:
        """List customers that can receive webhooks."""
        await self._require_super_admin()
        return await self._store.list_customer_profiles()

    async def list_settings(self) -> list[WebhookSetting]:
        """List all client webhook settings, newest first."""
        await self._require_super_admin()
        return await self._store.list_webhook_settings()

    async def create_setting(self, client_id: str, webhook_url: str) -> WebhookSetting:
        """Register a webhook for a customer.

        Args:
            client_id: Customer profile id.
            webhook_url: Destination URL.

        Returns:
            The stored setting, active.

        Raises:
            InvalidWebhookURLError: If the URL is malformed.
            WebhookValidationError: If the endpoint rejected the test message.
        """
        await self._require_super_admin()
        await self._check_endpoint(webhook_url)

        setting = await self._store.insert_webhook_setting(
            WebhookSetting(client_id=client_id, webhook_url=webhook_url, is_active=True)
        )
        self._logger.info(
            "webhook_setting_created",
            setting_id=setting.id,
            client_id=client_id,
            url=webhook_url,
        )
        return setting

    async def update_setting(
        self,
        setting_id: str,
        *,
        webhook_url: str | None = None,
        is_active: bool | None = None,
    ) -> WebhookSetting:
        """Change a setting's URL or active flag.

        A new URL is tested the same way as on creation.
        """
        await self._require_super_admin()

        fields: dict[str, object] = {}
        if webhook_url is not None:
            await self._check_endpoint(webhook_url)
            fields["webhook_url"] = webhook_url
        if is_active is not None:
            fields["is_active"] = is_active

        if not fields:
            setting = await self._store.read_webhook_setting(setting_id)
            if setting is None:
                raise DataAccessError(
                    f"Webhook setting not found: {setting_id}",
                    operation="read_webhook_setting",
                    details={"setting_id": setting_id},
                )
            return setting

        setting = await self._store.update_webhook_setting(setting_id, fields)
        self._logger.info(
            "webhook_setting_updated",
            setting_id=setting_id,
            fields=sorted(fields),
        )
        return setting

    async def delete_setting(self, setting_id: str) -> bool:
        """Delete a setting. Returns False if it did not exist."""
        await self._require_super_admin()
        deleted = await self._store.delete_webhook_setting(setting_id)
        self._logger.info("webhook_setting_deleted", setting_id=setting_id, deleted=deleted)
        return deleted

    async def update_payload_config(
        self,
        setting_id: str,
        templates: MessageTemplates,
        webhook_url: str | None = None,
    ) -> WebhookSetting:
        """Set a client's template override, optionally changing its URL."""
        await self._require_super_admin()

        fields: dict[str, object] = {"payload_config": templates}
        if webhook_url is not None:
            await self._check_endpoint(webhook_url)
            fields["webhook_url"] = webhook_url

        setting = await self._store.update_webhook_setting(setting_id, fields)
        self._logger.info("webhook_payload_config_updated", setting_id=setting_id)
        return setting

    async def get_global_templates(self) -> MessageTemplates:
        """Get the global templates, or the defaults when none are saved."""
        await self._require_super_admin()
        return resolve_templates(await self._store.read_global_webhook_config())

    async def update_global_templates(self, templates: MessageTemplates) -> MessageTemplates:
        """Save the global templates used by destinations without an override."""
        await self._require_super_admin()
        saved = await self._store.write_global_webhook_config(templates)
        self._logger.info("global_webhook_config_updated")
        return saved
