"""Order lifecycle controller.

This module provides the operations customers and employees perform on
orders: placing an order, changing its status, and listing orders.
Every successful create or status change triggers a webhook
notification in the background; the notification's outcome never
affects the operation's result.
"""

import random
import time
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from src.auth.base import AuthProvider, AuthUser
from src.errors import (
    DataAccessError,
    InvalidTransitionError,
    OrderNotFoundError,
    PermissionDeniedError,
    StepUpRequiredError,
    ValidationError,
)
from src.orders.cache import ProfileCache
from src.orders.models import (
    MAX_NAME_SPEC_LENGTH,
    TIMEZONES,
    Order,
    OrderStatus,
    can_transition,
    generate_order_id,
    requires_step_up,
)
from src.orders.stats import OrderStats, compute_order_stats
from src.resilience.inflight import InFlight
from src.storage.base import Profile, Store
from src.webhooks.dispatcher import NotificationDispatcher
from src.webhooks.events import build_order_created_event, build_order_updated_event

logger = structlog.get_logger(__name__)

# (user_id, epoch milliseconds) of a create request
CreateKey = tuple[str, int]


def validate_order_request(
    account_count: int,
    timezone: str,
    account_name_spec: str | None,
) -> str | None:
    """Validate order input and normalize the naming spec.

    Returns:
        The naming spec, stripped, or None when blank.

    Raises:
        ValidationError: If any field is invalid.
    """
    if isinstance(account_count, bool) or not isinstance(account_count, int) or account_count <= 0:
        raise ValidationError(
            "Account count must be a positive integer",
            details={"account_count": account_count},
        )
    if timezone not in TIMEZONES:
        raise ValidationError(
            f"Unsupported timezone: {timezone}",
            details={"timezone": timezone},
        )
    if account_name_spec is None:
        return None
    spec = account_name_spec.strip()
    if len(spec) > MAX_NAME_SPEC_LENGTH:
        raise ValidationError(
            f"Account name specification must be at most {MAX_NAME_SPEC_LENGTH} characters",
            details={"length": len(spec)},
        )
    return spec or None


def parse_status(status: OrderStatus | str) -> OrderStatus:
    """Coerce a status value, raising ValidationError for unknown ones."""
    try:
        return OrderStatus(status)
    except ValueError as e:
        raise ValidationError(f"Unknown order status: {status}", details={"status": status}) from e


class OrderLifecycleController:
    """Creates orders and moves them through their statuses.

    The controller is cheap to build per session. The dispatcher, the
    profile cache and the create guard are shared process-wide and are
    passed in by whoever owns them.
    """

    def __init__(
        self,
        store: Store,
        auth: AuthProvider,
        dispatcher: NotificationDispatcher,
        *,
        profile_cache: ProfileCache | None = None,
        create_guard: InFlight[CreateKey, Order] | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Backing store.
            auth: The session's authentication provider.
            dispatcher: Notification dispatcher for lifecycle events.
            profile_cache: Shared profile cache.
            create_guard: Shared in-flight registry for order creation.
            clock: Time source for order ids and the create key.
            rng: Random source for the order id suffix.
        """
        self._store = store
        self._auth = auth
        self._dispatcher = dispatcher
        self._profile_cache = profile_cache if profile_cache is not None else ProfileCache()
        self._creates: InFlight[CreateKey, Order] = (
            create_guard if create_guard is not None else InFlight("order_create")
        )
        self._clock = clock or (lambda: datetime.now(UTC))
        self._rng = rng
        self._logger = logger.bind(component="order_lifecycle")

    # ------------------------------------------------------------------
    # Customer operations
    # ------------------------------------------------------------------

    async def create_order(
        self,
        account_count: int,
        timezone: str,
        account_name_spec: str | None = None,
    ) -> Order:
        """Place a new order for the signed-in customer.

        Rapid duplicate submissions (same user, same millisecond) share
        one insert and all receive the same order.

        Args:
            account_count: Number of accounts, positive.
            timezone: One of TIMEZONES.
            account_name_spec: Optional naming instructions, at most 300 chars.

        Returns:
            The persisted order, status pending.

        Raises:
            ValidationError: On bad input.
            AuthenticationError: If there is no session.
            DataAccessError: If the profile read or insert fails.
        """
        spec = validate_order_request(account_count, timezone, account_name_spec)
        user = await self._auth.get_current_user()

        now = self._clock()
        key: CreateKey = (user.id, int(now.timestamp() * 1000))

        self._logger.info(
            "order_create_requested",
            user_id=user.id,
            account_count=account_count,
            timezone=timezone,
        )
        return await self._creates.run(
            key,
            lambda: self._insert_order(user, now, account_count, timezone, spec),
        )

    async def _insert_order(
        self,
        user: AuthUser,
        now: datetime,
        account_count: int,
        timezone: str,
        account_name_spec: str | None,
    ) -> Order:
        start = time.perf_counter()

        profile = await self._profile_cache.get_or_load(user.id, self._store.read_profile)
        if profile is None:
            raise DataAccessError(
                f"Profile not found for user: {user.id}",
                operation="read_profile",
                details={"user_id": user.id},
            )

        order = Order(
            id=generate_order_id(now, self._rng),
            user_id=user.id,
            client_name=profile.client_name or "",
            account_count=account_count,
            timezone=timezone,
            account_name_spec=account_name_spec,
            status=OrderStatus.PENDING,
            created_at=now,
        )
        stored = await self._store.insert_order(order)

        self._logger.info(
            "order_created",
            order_id=stored.id,
            client_name=stored.client_name,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )

        self._dispatcher.spawn(build_order_created_event(stored))
        return stored

    async def list_customer_orders(self) -> list[Order]:
        """List the signed-in customer's own orders, newest first."""
        user = await self._auth.get_current_user()
        orders = await self._store.list_orders_for_user(user.id)
        self._logger.info("customer_orders_listed", user_id=user.id, count=len(orders))
        return orders

    # ------------------------------------------------------------------
    # Employee operations
    # ------------------------------------------------------------------

    async def verify_password(self, password: str) -> None:
        """Re-check the signed-in user's password (step-up authentication).

        Raises:
            AuthenticationError: If there is no session or the password is wrong.
        """
        await self._auth.verify_password(password)

    async def update_order_status(
        self,
        order_id: str,
        new_status: OrderStatus | str,
        *,
        password: str | None = None,
    ) -> Order:
        """Move an order to a new status.

        Completing or cancelling an order requires the employee's password,
        checked before the order is read or written.

        Args:
            order_id: Order to update.
            new_status: Target status.
            password: Freshly entered password, for completed/cancelled.

        Returns:
            The updated order.

        Raises:
            ValidationError: If the status is unknown.
            AuthenticationError: No session or wrong password.
            StepUpRequiredError: Password missing for a terminal status.
            PermissionDeniedError: If the user is not an employee.
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is terminal or the move is not allowed.
        """
        target = parse_status(new_status)
        actor = await self._require_staff()

        if requires_step_up(target):
            if not password:
                self._logger.warning(
                    "step_up_required",
                    order_id=order_id,
                    status=target.value,
                    user_id=actor.id,
                )
                raise StepUpRequiredError(target.value)
            await self._auth.verify_password(password)

        current = await self._store.read_order(order_id)
        if current is None:
            raise OrderNotFoundError(order_id)

        if not can_transition(current.status, target):
            self._logger.warning(
                "transition_rejected",
                order_id=order_id,
                current=current.status.value,
                requested=target.value,
            )
            raise InvalidTransitionError(order_id, current.status.value, target.value)

        updated = await self._store.write_order(order_id, {"status": target})

        self._logger.info(
            "order_status_updated",
            order_id=order_id,
            previous_status=current.status.value,
            status=target.value,
            user_id=actor.id,
        )

        self._dispatcher.spawn(
            build_order_updated_event(current, target),
            nickname=actor.nickname or "",
        )
        return updated

    async def list_orders(self) -> list[Order]:
        """List all orders, newest first (employees only)."""
        await self._require_staff()
        orders = await self._store.list_orders()
        self._logger.info("orders_listed", count=len(orders))
        return orders

    async def order_stats(self) -> OrderStats:
        """Compute dashboard statistics over all orders (employees only)."""
        return compute_order_stats(await self.list_orders())

    async def rename_client(self, user_id: str, client_name: str) -> Profile:
        """Change a customer's client name and drop their cached profile.

        Raises:
            ValidationError: If the name is blank.
            PermissionDeniedError: If the user is not an employee.
        """
        await self._require_staff()
        name = client_name.strip()
        if not name:
            raise ValidationError("Client name must not be empty")
        profile = await self._store.update_profile(user_id, {"client_name": name})
        self._profile_cache.invalidate(user_id)
        self._logger.info("client_renamed", user_id=user_id, client_name=name)
        return profile

    async def _require_staff(self) -> Profile:
        user = await self._auth.get_current_user()
        profile = await self._store.read_profile(user.id)
        if profile is None or not profile.is_staff:
            self._logger.warning("staff_permission_denied", user_id=user.id)
            raise PermissionDeniedError(
                "Insufficient permissions",
                details={"user_id": user.id},
            )
        return profile
