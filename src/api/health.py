"""Health checks for the order console service.

This module provides:
- /health (liveness): Basic check that the service is running
- /health/ready (readiness): Check of the backing store and notifier

Features:
- Individual component health checks with timeouts
- Latency tracking
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog

from src.storage.base import Store
from src.webhooks.dispatcher import NotificationDispatcher

logger = structlog.get_logger(__name__)


class HealthStatus(Enum):
    """Health status values."""

    OK = "ok"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceStatus(Enum):
    """Overall service status."""

    READY = "ready"
    DEGRADED = "degraded"
    NOT_READY = "not_ready"


@dataclass
class ComponentCheck:
    """Result of a component health check."""

    name: str
    status: HealthStatus
    latency_ms: float = 0.0
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.error:
            result["error"] = self.error
        if self.details:
            result["details"] = self.details
        return result


class HealthChecker:
    """Base class for component health checkers."""

    def __init__(self, name: str, timeout: float = 5.0) -> None:
        self.name = name
        self.timeout = timeout

    async def check(self) -> ComponentCheck:
        """Run the check, converting timeouts and errors to UNHEALTHY."""
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(self._do_check(), timeout=self.timeout)
            return ComponentCheck(
                name=self.name,
                status=result.status,
                latency_ms=(time.monotonic() - start) * 1000,
                error=result.error,
                details=result.details,
            )
        except TimeoutError:
            return ComponentCheck(
                name=self.name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                error=f"Timeout after {self.timeout}s",
            )
        except Exception as e:
            return ComponentCheck(
                name=self.name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                error=str(e),
            )

    async def _do_check(self) -> ComponentCheck:
        raise NotImplementedError


class StoreHealthChecker(HealthChecker):
    """Reads the global webhook config as a cheap store round trip."""

    def __init__(self, store: Store, timeout: float = 2.0) -> None:
        super().__init__("store", timeout)
        self.store = store

    async def _do_check(self) -> ComponentCheck:
        await self.store.read_global_webhook_config()
        return ComponentCheck(name=self.name, status=HealthStatus.OK)


class NotifierHealthChecker(HealthChecker):
    """Reports notification backlog; a large backlog is DEGRADED."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        *,
        backlog_threshold: int = 100,
        timeout: float = 1.0,
    ) -> None:
        super().__init__("notifier", timeout)
        self.dispatcher = dispatcher
        self.backlog_threshold = backlog_threshold

    async def _do_check(self) -> ComponentCheck:
        pending = self.dispatcher.pending_count
        status = HealthStatus.DEGRADED if pending > self.backlog_threshold else HealthStatus.OK
        return ComponentCheck(
            name=self.name,
            status=status,
            details={"pending_notifications": pending},
        )


@dataclass
class HealthCheckResult:
    """Result of full health check."""

    status: ServiceStatus
    checks: dict[str, dict[str, Any]]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: str = "1.0.0"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "checks": self.checks,
            "timestamp": self.timestamp.isoformat(),
            "version": self.version,
        }


class HealthService:
    """Runs registered health checkers for liveness and readiness probes.

    Example:
        service = HealthService()
        service.register_checker(StoreHealthChecker(store))
        result = await service.readiness()
    """

    def __init__(self, version: str = "1.0.0") -> None:
        self.version = version
        self._checkers: list[HealthChecker] = []

    def register_checker(self, checker: HealthChecker) -> None:
        """Register a health checker."""
        self._checkers.append(checker)
        logger.debug("health_checker_registered", name=checker.name)

    async def liveness(self) -> dict[str, Any]:
        """Fast check that the service is running; no dependencies."""
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def readiness(self) -> HealthCheckResult:
        """Check all registered components in parallel."""
        results = await asyncio.gather(*(checker.check() for checker in self._checkers))

        checks = {result.name: result.to_dict() for result in results}
        statuses = {result.status for result in results}

        if HealthStatus.UNHEALTHY in statuses:
            status = ServiceStatus.NOT_READY
        elif HealthStatus.DEGRADED in statuses:
            status = ServiceStatus.DEGRADED
        else:
            status = ServiceStatus.READY

        logger.info(
            "health_check_completed",
            status=status.value,
            checks_count=len(checks),
        )
        return HealthCheckResult(status=status, checks=checks, version=self.version)


def create_health_service(
    store: Store,
    dispatcher: NotificationDispatcher,
    version: str = "1.0.0",
) -> HealthService:
    """Create a health service with the store and notifier checkers."""
    service = HealthService(version=version)
    service.register_checker(StoreHealthChecker(store))
    service.register_checker(NotifierHealthChecker(dispatcher))
    return service
