"""FastAPI dependencies resolving the per-request services."""

from fastapi import Depends, Header, Request

from src.api.container import ServiceContainer
from src.auth.base import AuthProvider
from src.orders.service import OrderLifecycleController
from src.webhooks.manager import WebhookSettingsManager


def get_container(request: Request) -> ServiceContainer:
    """Get the container attached to the application."""
    return request.app.state.container


def bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    """Extract the bearer token from the Authorization header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_auth(
    container: ServiceContainer = Depends(get_container),
    token: str | None = Depends(bearer_token),
) -> AuthProvider:
    """Build the session's AuthProvider from the bearer token."""
    return container.auth_for(token)


def get_order_controller(
    container: ServiceContainer = Depends(get_container),
    auth: AuthProvider = Depends(get_auth),
) -> OrderLifecycleController:
    """Build the lifecycle controller for this request's session."""
    return container.order_controller(auth)


def get_webhook_manager(
    container: ServiceContainer = Depends(get_container),
    auth: AuthProvider = Depends(get_auth),
) -> WebhookSettingsManager:
    """Build the webhook settings manager for this request's session."""
    return container.webhook_manager(auth)
