"""Order models and the order status state machine.

Status transitions:

    pending ──> processing ──> completed
       │  ^         │
       │  └─────────┤
       │            └────────> cancelled
       ├─────────────────────> completed
       └─────────────────────> cancelled

completed and cancelled are terminal.
"""

import random
import string
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

MAX_NAME_SPEC_LENGTH = 300

TIMEZONES: tuple[str, ...] = (
    "GMT-12:00", "GMT-11:00", "GMT-10:00", "GMT-09:00", "GMT-08:00",
    "GMT-07:00", "GMT-06:00", "GMT-05:00", "GMT-04:00", "GMT-03:00",
    "GMT-02:00", "GMT-01:00", "GMT+00:00", "GMT+01:00", "GMT+02:00",
    "GMT+03:00", "GMT+03:30", "GMT+04:00", "GMT+04:30", "GMT+05:00",
    "GMT+05:30", "GMT+05:45", "GMT+06:00", "GMT+06:30", "GMT+07:00",
    "GMT+08:00", "GMT+08:45", "GMT+09:00", "GMT+09:30", "GMT+10:00",
    "GMT+10:30", "GMT+11:00", "GMT+12:00", "GMT+12:45", "GMT+13:00",
    "GMT+14:00",
)

DEFAULT_TIMEZONE = "GMT+00:00"


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are allowed from this status."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Statuses that require the acting employee to re-enter their password
STEP_UP_STATUSES = TERMINAL_STATUSES

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether an order may move from one status to another."""
    return target in ALLOWED_TRANSITIONS[current]


def requires_step_up(target: OrderStatus) -> bool:
    """Check whether moving to ``target`` needs a fresh password."""
    return target in STEP_UP_STATUSES


def generate_order_id(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """Generate an order id: ``yyyyMMddHHmmss`` followed by two uppercase letters.

    The suffix is not cryptographically random; the timestamp prefix keeps
    collisions unlikely.

    Args:
        now: Timestamp for the prefix (defaults to current UTC time).
        rng: Random source for the suffix.

    Returns:
        Order id string, e.g. ``20240105093012QK``.
    """
    now = now or datetime.now(UTC)
    rng = rng or random
    suffix = "".join(rng.choice(string.ascii_uppercase) for _ in range(2))
    return f"{now.strftime('%Y%m%d%H%M%S')}{suffix}"


class Order(BaseModel):
    """A customer order for advertising accounts."""

    id: str = Field(..., description="Opaque order identifier")
    user_id: str = Field(..., description="Owning customer's user id")
    client_name: str = Field(
        default="",
        description="Customer display name, copied at creation time",
    )
    account_count: int = Field(..., description="Number of accounts requested", gt=0)
    timezone: str = Field(..., description="Requested account timezone")
    account_name_spec: str | None = Field(
        default=None,
        description="Free-text account naming instructions",
        max_length=MAX_NAME_SPEC_LENGTH,
    )
    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        description="Current lifecycle status",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the order was placed",
    )

    @field_validator("client_name", mode="before")
    @classmethod
    def _null_client_name(cls, value: object) -> object:
        return "" if value is None else value
