"""Webhook settings API endpoints.

Provides REST API for managing per-client webhook destinations and
the global message templates (super admins only).
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.dependencies import get_webhook_manager
from src.storage.base import Profile, WebhookSetting
from src.webhooks.manager import WebhookSettingsManager
from src.webhooks.templates import MessageTemplates

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


# ============================================================================
# Request Models
# ============================================================================


class WebhookCreateRequest(BaseModel):
    """Request to register a client webhook."""

    client_id: str = Field(..., description="Customer profile id")
    webhook_url: str = Field(..., description="Webhook endpoint URL")


class WebhookUpdateRequest(BaseModel):
    """Request to update a client webhook."""

    webhook_url: str | None = Field(default=None, description="New URL")
    is_active: bool | None = Field(default=None, description="Enable/disable webhook")


class PayloadConfigRequest(BaseModel):
    """Request to set a client's message templates."""

    payload_config: MessageTemplates = Field(..., description="Template override")
    webhook_url: str | None = Field(default=None, description="Optional new URL")


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/global", response_model=MessageTemplates)
async def get_global_templates(
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> MessageTemplates:
    """Get the global message templates (defaults when none are saved)."""
    return await manager.get_global_templates()


@router.put("/global", response_model=MessageTemplates)
async def update_global_templates(
    request: MessageTemplates,
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> MessageTemplates:
    """Replace the global message templates."""
    return await manager.update_global_templates(request)


@router.get("/customers", response_model=list[Profile])
async def list_customers(
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> list[Profile]:
    """List customers a webhook can be registered for."""
    return await manager.list_customer_profiles()


@router.get("/clients", response_model=list[WebhookSetting])
async def list_client_webhooks(
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> list[WebhookSetting]:
    """List all client webhooks, newest first."""
    return await manager.list_settings()


@router.post(
    "/clients",
    response_model=WebhookSetting,
    status_code=201,
    responses={
        201: {"description": "Webhook created"},
        400: {"description": "Invalid URL or unreachable endpoint"},
    },
)
async def create_client_webhook(
    request: WebhookCreateRequest,
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> WebhookSetting:
    """Register a webhook for a customer.

    The endpoint receives a test message first and must accept it.
    """
    return await manager.create_setting(request.client_id, request.webhook_url)


@router.patch("/clients/{setting_id}", response_model=WebhookSetting)
async def update_client_webhook(
    setting_id: str,
    request: WebhookUpdateRequest,
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> WebhookSetting:
    """Change a client webhook's URL or active flag."""
    return await manager.update_setting(
        setting_id,
        webhook_url=request.webhook_url,
        is_active=request.is_active,
    )


@router.delete(
    "/clients/{setting_id}",
    status_code=204,
    responses={
        204: {"description": "Webhook deleted"},
        404: {"description": "Webhook not found"},
    },
)
async def delete_client_webhook(
    setting_id: str,
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> None:
    """Delete a client webhook."""
    if not await manager.delete_setting(setting_id):
        raise HTTPException(status_code=404, detail=f"Webhook {setting_id} not found")


@router.put("/clients/{setting_id}/payload", response_model=WebhookSetting)
async def update_client_payload(
    setting_id: str,
    request: PayloadConfigRequest,
    manager: WebhookSettingsManager = Depends(get_webhook_manager),
) -> WebhookSetting:
    """Set a client's message templates, optionally changing its URL."""
    return await manager.update_payload_config(
        setting_id,
        request.payload_config,
        webhook_url=request.webhook_url,
    )
