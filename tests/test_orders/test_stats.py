"""Tests for order statistics."""

from src.orders.models import Order, OrderStatus
from src.orders.stats import TimezoneStat, compute_order_stats


def make_order(n: int, status: OrderStatus, count: int, tz: str = "GMT+00:00") -> Order:
    return Order(
        id=f"2024010500000{n}AA",
        user_id="u1",
        account_count=count,
        timezone=tz,
        status=status,
    )


class TestComputeOrderStats:
    """Tests for compute_order_stats()."""

    def test_empty(self) -> None:
        stats = compute_order_stats([])

        assert stats.total == 0
        assert stats.total_accounts_provided == 0
        assert stats.timezone_stats == []

    def test_counts_and_totals(self) -> None:
        orders = [
            make_order(1, OrderStatus.PENDING, 5, "GMT+08:00"),
            make_order(2, OrderStatus.PENDING, 2, "GMT+00:00"),
            make_order(3, OrderStatus.PENDING, 4, "GMT+00:00"),
            make_order(4, OrderStatus.PROCESSING, 3),
            make_order(5, OrderStatus.COMPLETED, 10),
            make_order(6, OrderStatus.COMPLETED, 1),
            make_order(7, OrderStatus.CANCELLED, 9),
        ]

        stats = compute_order_stats(orders)

        assert stats.pending == 3
        assert stats.processing == 1
        assert stats.completed == 2
        assert stats.cancelled == 1
        assert stats.total == 7
        assert stats.total_accounts_provided == 11
        assert stats.timezone_stats == [
            TimezoneStat(timezone="GMT+00:00", total=6),
            TimezoneStat(timezone="GMT+08:00", total=5),
        ]

    def test_timezone_stats_only_count_pending(self) -> None:
        orders = [
            make_order(1, OrderStatus.PROCESSING, 5, "GMT+08:00"),
            make_order(2, OrderStatus.COMPLETED, 5, "GMT+08:00"),
        ]

        assert compute_order_stats(orders).timezone_stats == []
