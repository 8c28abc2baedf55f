"""HTTP API for the order console.

This module contains:
- Order endpoints (create, list, statistics, status changes)
- Profile endpoints (client rename)
- Webhook settings endpoints
- Health check endpoints
- The service container shared across requests
"""

from src.api.container import ServiceContainer
from src.api.health import (
    ComponentCheck,
    HealthChecker,
    HealthCheckResult,
    HealthService,
    HealthStatus,
    NotifierHealthChecker,
    ServiceStatus,
    StoreHealthChecker,
    create_health_service,
)
from src.api.routes import ErrorResponse, create_app, status_code_for

__all__ = [
    # Container
    "ServiceContainer",
    # Health check classes
    "ComponentCheck",
    "HealthChecker",
    "HealthCheckResult",
    "HealthService",
    "NotifierHealthChecker",
    "StoreHealthChecker",
    "create_health_service",
    # Health check enums
    "HealthStatus",
    "ServiceStatus",
    # App factory
    "ErrorResponse",
    "create_app",
    "status_code_for",
]
