"""Profile API endpoints.

Employees maintain the client names shown on orders and notifications.
"""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.dependencies import get_order_controller
from src.orders.service import OrderLifecycleController
from src.storage.base import Profile

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profiles", tags=["Profiles"])


class ClientNameUpdateRequest(BaseModel):
    """Request to rename a customer."""

    client_name: str = Field(..., description="New client display name")


@router.patch(
    "/{user_id}/client-name",
    response_model=Profile,
    responses={
        400: {"description": "Blank client name"},
        403: {"description": "Not an employee"},
    },
)
async def rename_client(
    user_id: str,
    request: ClientNameUpdateRequest,
    controller: OrderLifecycleController = Depends(get_order_controller),
) -> Profile:
    """Change a customer's client name."""
    profile = await controller.rename_client(user_id, request.client_name)
    logger.info("client_renamed_via_api", user_id=user_id)
    return profile
