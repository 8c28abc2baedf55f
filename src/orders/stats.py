"""Order statistics for the employee dashboard."""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from src.orders.models import Order, OrderStatus


class TimezoneStat(BaseModel):
    """Accounts awaiting provisioning in one timezone."""

    timezone: str
    total: int


class OrderStats(BaseModel):
    """Aggregate counts over a set of orders."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    cancelled: int = 0
    total: int = 0
    total_accounts_provided: int = Field(
        default=0,
        description="Sum of account_count over completed orders",
    )
    timezone_stats: list[TimezoneStat] = Field(
        default_factory=list,
        description="Pending account totals per timezone, largest first",
    )


def compute_order_stats(orders: Iterable[Order]) -> OrderStats:
    """Compute status counts, provided accounts and pending demand by timezone.

    Args:
        orders: Orders to summarize.

    Returns:
        OrderStats for the given orders.
    """
    counts = {status: 0 for status in OrderStatus}
    total = 0
    provided = 0
    pending_by_timezone: dict[str, int] = {}

    for order in orders:
        counts[order.status] += 1
        total += 1
        if order.status == OrderStatus.COMPLETED:
            provided += order.account_count
        elif order.status == OrderStatus.PENDING:
            pending_by_timezone[order.timezone] = (
                pending_by_timezone.get(order.timezone, 0) + order.account_count
            )

    timezone_stats = [
        TimezoneStat(timezone=tz, total=count)
        for tz, count in sorted(pending_by_timezone.items(), key=lambda item: -item[1])
    ]

    return OrderStats(
        pending=counts[OrderStatus.PENDING],
        processing=counts[OrderStatus.PROCESSING],
        completed=counts[OrderStatus.COMPLETED],
        cancelled=counts[OrderStatus.CANCELLED],
        total=total,
        total_accounts_provided=provided,
        timezone_stats=timezone_stats,
    )
