"""Order API endpoints.

Customers place orders and list their own; employees list all orders,
view statistics and move orders through their statuses.
"""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.dependencies import get_order_controller
from src.orders.models import DEFAULT_TIMEZONE, Order
from src.orders.service import OrderLifecycleController
from src.orders.stats import OrderStats

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


# ============================================================================
# Request Models
# ============================================================================


class OrderCreateRequest(BaseModel):
    """Request to place an order."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "account_count": 5,
                    "timezone": "GMT+08:00",
                    "account_name_spec": "shop-01 .. shop-05",
                }
            ]
        }
    }

    account_count: int = Field(..., description="Number of accounts requested")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="Account timezone, e.g. GMT+08:00")
    account_name_spec: str | None = Field(
        default=None,
        description="Naming instructions for the accounts (max 300 characters)",
    )


class StatusUpdateRequest(BaseModel):
    """Request to change an order's status."""

    status: str = Field(..., description="Target status: pending, processing, completed or cancelled")
    password: str | None = Field(
        default=None,
        description="Current password, required for completed and cancelled",
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=Order,
    status_code=201,
    responses={
        201: {"description": "Order created"},
        400: {"description": "Invalid request"},
        401: {"description": "Not signed in"},
    },
)
async def create_order(
    request: OrderCreateRequest,
    controller: OrderLifecycleController = Depends(get_order_controller),
) -> Order:
    """Place an order for the signed-in customer."""
    return await controller.create_order(
        request.account_count,
        request.timezone,
        request.account_name_spec,
    )


@router.get("", response_model=list[Order])
async def list_orders(
    controller: OrderLifecycleController = Depends(get_order_controller),
) -> list[Order]:
    """List all orders, newest first (employees only)."""
    return await controller.list_orders()


@router.get("/mine", response_model=list[Order])
async def list_my_orders(
    controller: OrderLifecycleController = Depends(get_order_controller),
) -> list[Order]:
    """List the signed-in customer's orders."""
    return await controller.list_customer_orders()


@router.get("/stats", response_model=OrderStats)
async def order_stats(
    controller: OrderLifecycleController = Depends(get_order_controller),
) -> OrderStats:
    """Dashboard statistics over all orders (employees only)."""
    return await controller.order_stats()


@router.patch(
    "/{order_id}/status",
    response_model=Order,
    responses={
        401: {"description": "Password required or invalid"},
        403: {"description": "Not an employee"},
        404: {"description": "Order not found"},
        409: {"description": "Transition not allowed"},
    },
)
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    controller: OrderLifecycleController = Depends(get_order_controller),
) -> Order:
    """Move an order to a new status."""
    order = await controller.update_order_status(
        order_id,
        request.status,
        password=request.password,
    )
    logger.info("order_status_changed_via_api", order_id=order_id, status=order.status.value)
    return order
