"""HTTP transport for webhook deliveries.

Posts a JSON body to one destination, retrying failed attempts with
linear backoff: the wait before retry attempt n is ``base_delay * n``.
Malformed URLs fail immediately without using the retry budget.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from src.config import settings
from src.errors import InvalidWebhookURLError, WebhookAttemptError, WebhookDeliveryError

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class WebhookDeliveryStatus(str, Enum):
    """Status of a webhook delivery."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    RETRYING = "retrying"


class WebhookDelivery(BaseModel):
    """Record of one delivery to one destination, across all its attempts."""

    id: str = Field(
        default_factory=lambda: f"dlv_{uuid.uuid4().hex[:12]}",
        description="Unique delivery identifier",
    )
    url: str = Field(..., description="Target URL")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Body that was posted",
    )
    status: WebhookDeliveryStatus = Field(
        default=WebhookDeliveryStatus.PENDING,
        description="Current delivery status",
    )
    attempt_count: int = Field(default=0, description="POSTs made so far")
    max_attempts: int = Field(default=3, description="Attempt budget")
    last_attempt_at: datetime | None = Field(default=None)
    response_status: int | None = Field(default=None, description="Last HTTP status")
    response_body: str | None = Field(default=None, description="Response body (truncated)")
    error_message: str | None = Field(default=None, description="Last error")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = Field(default=None)

    def begin_attempt(self) -> None:
        """Record the start of an attempt."""
        self.attempt_count += 1
        self.last_attempt_at = datetime.now(UTC)
        self.status = WebhookDeliveryStatus.RETRYING

    def mark_success(self, response_status: int, response_body: str | None = None) -> None:
        """Mark delivery as successful.

        Args:
            response_status: HTTP status code.
            response_body: Optional response body.
        """
        self.status = WebhookDeliveryStatus.SUCCESS
        self.response_status = response_status
        self.response_body = response_body[:1000] if response_body else None
        self.error_message = None
        self.completed_at = datetime.now(UTC)

    def record_failure(self, error_message: str, response_status: int | None = None) -> None:
        """Record a failed attempt; the delivery may still be retried."""
        self.error_message = error_message
        self.response_status = response_status

    def mark_failed(self) -> None:
        """Mark delivery as permanently failed."""
        self.status = WebhookDeliveryStatus.FAILED
        self.completed_at = datetime.now(UTC)


def validate_webhook_url(url: str) -> httpx.URL:
    """Check that ``url`` is an absolute http(s) URL.

    Raises:
        InvalidWebhookURLError: If the URL can never be delivered to.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidWebhookURLError(url, f"Invalid webhook URL format: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidWebhookURLError(url)
    return parsed


class WebhookTransport:
    """Posts JSON bodies to webhook URLs with bounded retries.

    Example:
        transport = WebhookTransport(max_attempts=3, base_delay=1.0)
        delivery = await transport.post(url, {"msg_type": "text", ...})
    """

    def __init__(
        self,
        *,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        timeout: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the transport.

        Args:
            max_attempts: Total POSTs per delivery (including the first).
            base_delay: Seconds multiplied by the attempt number between retries.
            timeout: HTTP request timeout in seconds.
            http_transport: Optional httpx transport (e.g. MockTransport).
            sleep: Coroutine used for backoff waits.
        """
        if max_attempts is None:
            max_attempts = settings.WEBHOOK_MAX_ATTEMPTS
        self.max_attempts = max(1, max_attempts)
        self.base_delay = settings.WEBHOOK_RETRY_DELAY_SECONDS if base_delay is None else base_delay
        self.timeout = timeout or settings.WEBHOOK_TIMEOUT_SECONDS
        self._http_transport = http_transport
        self._sleep = sleep
        self._logger = logger.bind(component="webhook_transport")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport)

    async def post(self, url: str, body: dict[str, Any]) -> WebhookDelivery:
        """Deliver ``body`` to ``url``, retrying failed attempts.

        Args:
            url: Destination URL.
            body: JSON-serializable body.

        Returns:
            The successful delivery record.

        Raises:
            InvalidWebhookURLError: If the URL is malformed (no retries made).
            WebhookDeliveryError: After all attempts failed; ``__cause__`` is
                the last attempt's error.
        """
        validate_webhook_url(url)
        delivery = WebhookDelivery(url=url, payload=body, max_attempts=self.max_attempts)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.base_delay, increment=self.base_delay),
            retry=retry_if_exception_type(WebhookAttemptError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    await self._attempt(delivery)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            delivery.mark_failed()
            self._logger.error(
                "delivery_failed_permanently",
                delivery_id=delivery.id,
                url=url,
                attempts=delivery.attempt_count,
                error=str(last_error),
            )
            raise WebhookDeliveryError(
                url, delivery.attempt_count, str(last_error)
            ) from last_error
        except InvalidWebhookURLError:
            delivery.mark_failed()
            raise

        return delivery

    async def probe(self, url: str, body: dict[str, Any]) -> bool:
        """Make a single POST and report whether it succeeded.

        Used to check a new endpoint before it is saved; never retries.
        """
        validate_webhook_url(url)
        try:
            async with self._client() as client:
                response = await client.post(url, json=body)
        except httpx.HTTPError as e:
            self._logger.warning("probe_failed", url=url, error=str(e))
            return False
        return response.is_success

    async def _attempt(self, delivery: WebhookDelivery) -> None:
        """Make a single delivery attempt.

        Raises:
            WebhookAttemptError: On a retryable failure.
            InvalidWebhookURLError: If httpx rejects the URL.
        """
        delivery.begin_attempt()
        url = delivery.url

        self._logger.debug(
            "attempting_delivery",
            delivery_id=delivery.id,
            attempt=delivery.attempt_count,
            max_attempts=delivery.max_attempts,
            url=url,
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    json=delivery.payload,
                    headers={"Content-Type": "application/json"},
                )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            delivery.record_failure(f"Invalid URL: {e}")
            raise InvalidWebhookURLError(url, str(e)) from e
        except httpx.TimeoutException as e:
            delivery.record_failure("Request timeout")
            self._logger.warning(
                "delivery_timeout",
                delivery_id=delivery.id,
                attempt=delivery.attempt_count,
                timeout=self.timeout,
            )
            raise WebhookAttemptError("Request timeout", url=url) from e
        except httpx.RequestError as e:
            delivery.record_failure(f"Connection error: {e}")
            self._logger.warning(
                "delivery_connection_error",
                delivery_id=delivery.id,
                attempt=delivery.attempt_count,
                error=str(e),
            )
            raise WebhookAttemptError(f"Connection error: {e}", url=url) from e

        if response.is_success:
            delivery.mark_success(
                response_status=response.status_code,
                response_body=response.text,
            )
            self._logger.info(
                "delivery_success",
                delivery_id=delivery.id,
                url=url,
                status_code=response.status_code,
                attempt=delivery.attempt_count,
            )
            return

        delivery.record_failure(
            f"HTTP error! status: {response.status_code}",
            response_status=response.status_code,
        )
        self._logger.warning(
            "delivery_non_success_response",
            delivery_id=delivery.id,
            attempt=delivery.attempt_count,
            status_code=response.status_code,
        )
        raise WebhookAttemptError(
            f"HTTP error! status: {response.status_code}",
            url=url,
            status_code=response.status_code,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._logger.info(
            "scheduling_retry",
            delay_seconds=delay,
            next_attempt=retry_state.attempt_number + 1,
            max_attempts=self.max_attempts,
        )
