"""Store backed by the hosted backend's PostgREST API.

Row-level security on the backend decides which rows the session's
access token may see; this client only issues the queries.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import ValidationError as RowValidationError

from src.config import settings
from src.errors import DataAccessError, OrderNotFoundError
from src.orders.models import Order
from src.storage.base import Profile, Store, WebhookSetting
from src.webhooks.templates import MessageTemplates

logger = structlog.get_logger(__name__)

WEBHOOK_SETTING_SELECT = "*,client:profiles!inner(id,email,client_name,role)"

T = TypeVar("T")


class RestStore(Store):
    """Async PostgREST client implementing the Store interface.

    Example:
        store = RestStore(access_token=session_token)
        order = await store.read_order("20240105093012QK")
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Backend base URL (defaults to BACKEND_URL).
            api_key: Public API key (defaults to BACKEND_ANON_KEY).
            access_token: Session token; the API key is used when absent.
            http_transport: Optional httpx transport (e.g. MockTransport).
            timeout: Request timeout in seconds.
        """
        self.base_url = (base_url or settings.BACKEND_URL).rstrip("/")
        self.api_key = api_key or settings.BACKEND_ANON_KEY or ""
        self.access_token = access_token
        self._http_transport = http_transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="rest_store")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.access_token or self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
                transport=self._http_transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        operation: str,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        representation: bool = False,
    ) -> list[dict[str, Any]]:
        """Make a request and return the response rows.

        Raises:
            DataAccessError: On transport errors or non-2xx responses.
        """
        client = await self._get_client()
        headers = {"Prefer": "return=representation"} if representation else None

        self._logger.debug("store_request", operation=operation, table=table, params=params)

        try:
            response = await client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            self._logger.error("store_request_failed", operation=operation, error=str(e))
            raise DataAccessError(
                f"Failed to reach backend: {e}", operation=operation
            ) from e

        if not response.is_success:
            self._logger.error(
                "store_request_rejected",
                operation=operation,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise DataAccessError(
                f"Backend returned {response.status_code}",
                operation=operation,
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    # Orders

    async def read_order(self, order_id: str) -> Order | None:
        """Get an order by id."""
        rows = await self._request(
            "read_order", "GET", "orders", params={"id": f"eq.{order_id}", "select": "*"}
        )
        return _parse("read_order", Order.model_validate, rows[0]) if rows else None

    async def insert_order(self, order: Order) -> Order:
        """Insert a new order."""
        rows = await self._request(
            "insert_order",
            "POST",
            "orders",
            json=[order.model_dump(mode="json")],
            representation=True,
        )
        return _parse("insert_order", Order.model_validate, rows[0]) if rows else order

    async def write_order(self, order_id: str, fields: dict[str, Any]) -> Order:
        """Update fields of an existing order."""
        rows = await self._request(
            "write_order",
            "PATCH",
            "orders",
            params={"id": f"eq.{order_id}"},
            json=_jsonable(fields),
            representation=True,
        )
        if not rows:
            raise OrderNotFoundError(order_id)
        return _parse("write_order", Order.model_validate, rows[0])

    async def list_orders(self) -> list[Order]:
        """List all orders, newest first."""
        rows = await self._request(
            "list_orders", "GET", "orders", params={"select": "*", "order": "created_at.desc"}
        )
        return [_parse("list_orders", Order.model_validate, row) for row in rows]

    async def list_orders_for_user(self, user_id: str) -> list[Order]:
        """List one customer's orders, newest first."""
        rows = await self._request(
            "list_orders_for_user",
            "GET",
            "orders",
            params={"select": "*", "user_id": f"eq.{user_id}", "order": "created_at.desc"},
        )
        return [_parse("list_orders_for_user", Order.model_validate, row) for row in rows]

    # Profiles

    async def read_profile(self, user_id: str) -> Profile | None:
        """Get a profile by user id."""
        rows = await self._request(
            "read_profile", "GET", "profiles", params={"id": f"eq.{user_id}", "select": "*"}
        )
        return _parse("read_profile", Profile.model_validate, rows[0]) if rows else None

    async def find_customer_by_client_name(self, client_name: str) -> Profile | None:
        """Get the customer profile with the given client name."""
        rows = await self._request(
            "find_customer_by_client_name",
            "GET",
            "profiles",
            params={
                "select": "*",
                "client_name": f"eq.{client_name}",
                "role": "eq.customer",
                "limit": "1",
            },
        )
        if not rows:
            return None
        return _parse("find_customer_by_client_name", Profile.model_validate, rows[0])

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> Profile:
        """Update fields of a profile."""
        rows = await self._request(
            "update_profile",
            "PATCH",
            "profiles",
            params={"id": f"eq.{user_id}"},
            json=_jsonable(fields),
            representation=True,
        )
        if not rows:
            raise DataAccessError(
                f"Profile not found for user: {user_id}",
                operation="update_profile",
                details={"user_id": user_id},
            )
        return _parse("update_profile", Profile.model_validate, rows[0])

    async def list_customer_profiles(self) -> list[Profile]:
        """List customers that have a client name, ordered by name."""
        rows = await self._request(
            "list_customer_profiles",
            "GET",
            "profiles",
            params={
                "select": "id,email,client_name,role",
                "role": "eq.customer",
                "client_name": "not.is.null",
                "order": "client_name.asc",
            },
        )
        return [_parse("list_customer_profiles", Profile.model_validate, row) for row in rows]

    # Webhook settings

    async def list_webhook_settings(
        self,
        *,
        client_id: str | None = None,
        active_only: bool = False,
    ) -> list[WebhookSetting]:
        """List client webhook rows, newest first."""
        params = {
            "select": WEBHOOK_SETTING_SELECT,
            "client.role": "eq.customer",
            "order": "created_at.desc",
        }
        if client_id is not None:
            params["client_id"] = f"eq.{client_id}"
        if active_only:
            params["is_active"] = "eq.true"
        rows = await self._request("list_webhook_settings", "GET", "webhook_settings", params=params)
        return [_parse("list_webhook_settings", _setting_from_row, row) for row in rows]

    async def read_webhook_setting(self, setting_id: str) -> WebhookSetting | None:
        """Get a client webhook row by id."""
        rows = await self._request(
            "read_webhook_setting",
            "GET",
            "webhook_settings",
            params={"select": WEBHOOK_SETTING_SELECT, "id": f"eq.{setting_id}"},
        )
        return _parse("read_webhook_setting", _setting_from_row, rows[0]) if rows else None

    async def insert_webhook_setting(self, setting: WebhookSetting) -> WebhookSetting:
        """Insert a client webhook row."""
        rows = await self._request(
            "insert_webhook_setting",
            "POST",
            "webhook_settings",
            json=[_setting_to_row(setting)],
            representation=True,
        )
        return _parse("insert_webhook_setting", _setting_from_row, rows[0]) if rows else setting

    async def update_webhook_setting(
        self,
        setting_id: str,
        fields: dict[str, Any],
    ) -> WebhookSetting:
        """Update fields of a client webhook row."""
        rows = await self._request(
            "update_webhook_setting",
            "PATCH",
            "webhook_settings",
            params={"id": f"eq.{setting_id}"},
            json=_jsonable({**fields, "updated_at": datetime.now(UTC)}),
            representation=True,
        )
        if not rows:
            raise DataAccessError(
                f"Webhook setting not found: {setting_id}",
                operation="update_webhook_setting",
                details={"setting_id": setting_id},
            )
        return _parse("update_webhook_setting", _setting_from_row, rows[0])

    async def delete_webhook_setting(self, setting_id: str) -> bool:
        """Delete a client webhook row."""
        rows = await self._request(
            "delete_webhook_setting",
            "DELETE",
            "webhook_settings",
            params={"id": f"eq.{setting_id}"},
            representation=True,
        )
        return bool(rows)

    async def read_global_webhook_config(self) -> MessageTemplates | None:
        """Get the global message templates, if configured."""
        rows = await self._request(
            "read_global_webhook_config",
            "GET",
            "global_webhook_config",
            params={"select": "payload_config", "limit": "1"},
        )
        if not rows or not rows[0].get("payload_config"):
            return None
        return _parse(
            "read_global_webhook_config", MessageTemplates.model_validate, rows[0]["payload_config"]
        )

    async def write_global_webhook_config(self, templates: MessageTemplates) -> MessageTemplates:
        """Update the single config row, inserting it if none exists."""
        body = {"payload_config": templates.to_config()}
        rows = await self._request(
            "write_global_webhook_config",
            "PATCH",
            "global_webhook_config",
            params={"id": "not.is.null"},
            json=body,
            representation=True,
        )
        if not rows:
            rows = await self._request(
                "write_global_webhook_config",
                "POST",
                "global_webhook_config",
                json=[body],
                representation=True,
            )
        if not rows:
            return templates
        config = rows[0]["payload_config"]
        return _parse("write_global_webhook_config", MessageTemplates.model_validate, config)


def _jsonable(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert enum, datetime and model values to JSON-ready primitives."""
    result: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, MessageTemplates):
            result[key] = value.to_config()
        elif isinstance(value, datetime):
            result[key] = value.isoformat()
        elif hasattr(value, "value"):
            result[key] = value.value
        else:
            result[key] = value
    return result


def _setting_to_row(setting: WebhookSetting) -> dict[str, Any]:
    return {
        "id": setting.id,
        "client_id": setting.client_id,
        "webhook_url": setting.webhook_url,
        "is_active": setting.is_active,
        "payload_config": setting.payload_config.to_config() if setting.payload_config else None,
    }


def _setting_from_row(row: dict[str, Any]) -> WebhookSetting:
    client = row.get("client") or {}
    data = {key: value for key, value in row.items() if key != "client"}
    data["client_name"] = client.get("client_name")
    return WebhookSetting.model_validate(data)


def _parse(operation: str, parser: Callable[[Any], T], row: Any) -> T:
    """Parse one backend row, reporting malformed rows as DataAccessError."""
    try:
        return parser(row)
    except RowValidationError as e:
        fields = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
        logger.error("store_row_malformed", operation=operation, fields=fields)
        raise DataAccessError(
            f"Backend returned a malformed row: {', '.join(fields) or 'unknown field'}",
            operation=operation,
            details={"fields": fields},
        ) from e
