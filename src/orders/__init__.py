"""Order model, status state machine and statistics.

The lifecycle controller lives in src.orders.service.
"""

from src.orders.models import (
    ALLOWED_TRANSITIONS,
    DEFAULT_TIMEZONE,
    MAX_NAME_SPEC_LENGTH,
    TERMINAL_STATUSES,
    TIMEZONES,
    Order,
    OrderStatus,
    can_transition,
    generate_order_id,
    requires_step_up,
)
from src.orders.stats import OrderStats, TimezoneStat, compute_order_stats

__all__ = [
    # Models
    "Order",
    "OrderStatus",
    "TIMEZONES",
    "DEFAULT_TIMEZONE",
    "MAX_NAME_SPEC_LENGTH",
    # State machine
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "can_transition",
    "requires_step_up",
    "generate_order_id",
    # Statistics
    "OrderStats",
    "TimezoneStat",
    "compute_order_stats",
]
