"""
Health Checker for component health monitoring.

Monitors database connectivity and whether the scan scheduler is keeping up.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional

if TYPE_CHECKING:
    from contract_monitor.core.scheduler import ScanScheduler
    from contract_monitor.storage import Database

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    WARNING = "warning"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health check result for a single component."""

    component: str
    status: HealthStatus
    message: str
    latency_ms: Optional[float] = None


@dataclass
class AggregateHealth:
    """Overall system health."""

    status: HealthStatus
    components: List[ComponentHealth] = field(default_factory=list)
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class HealthChecker:
    """
    Checks health of system components.

    Usage:
        checker = HealthChecker(db, scheduler)
        overall = await checker.check_all()
    """

    def __init__(
        self,
        db: Optional["Database"] = None,
        scheduler: Optional["ScanScheduler"] = None,
        stale_after_periods: float = 2.0,
        expect_scan_loop: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the health checker.

        Args:
            db: Database connection to check
            scheduler: Scan scheduler to check
            stale_after_periods: Scheduler is degraded when no scan finished
                                 within this many periods
            expect_scan_loop: False when periodic scans are deliberately off
                              (dashboard-only mode or scans disabled), so an
                              idle loop is normal
            clock: Must match the scheduler's clock
        """
        self.db = db
        self._scheduler = scheduler
        self._stale_after_periods = stale_after_periods
        self._expect_scan_loop = expect_scan_loop
        self._clock = clock

    async def check_database(self) -> ComponentHealth:
        start_time = time.time()

        if self.db is None:
            return ComponentHealth(
                component="database",
                status=HealthStatus.UNHEALTHY,
                message="No database connection configured",
            )

        try:
            await self.db.execute("SELECT 1")
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return ComponentHealth(
                component="database",
                status=HealthStatus.UNHEALTHY,
                message=f"Database error: {str(e)}",
                latency_ms=(time.time() - start_time) * 1000,
            )

        return ComponentHealth(
            component="database",
            status=HealthStatus.HEALTHY,
            message="Database is accessible",
            latency_ms=(time.time() - start_time) * 1000,
        )

    async def check_scheduler(self) -> ComponentHealth:
        """
        Check that scans are actually happening.

        A scheduler that has never completed a scan is only a WARNING (the
        first daily tick may simply not have come yet).
        """
        scheduler = self._scheduler
        if scheduler is None:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus.WARNING,
                message="No scan scheduler configured",
            )

        if not scheduler.is_running and not self._expect_scan_loop:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus.HEALTHY,
                message="Periodic scans off, on-demand scans only",
            )

        if not scheduler.is_running:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus.UNHEALTHY,
                message="Scan scheduler is not running",
            )

        finished_at = scheduler.last_scan_finished_at
        if finished_at is None:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus.WARNING,
                message="No scan has completed yet",
            )

        age_seconds = (self._clock() - finished_at).total_seconds()
        limit = scheduler.config.period_seconds * self._stale_after_periods
        if age_seconds > limit:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus.DEGRADED,
                message=f"Last scan finished {age_seconds / 3600:.1f}h ago",
            )

        summary = scheduler.last_summary
        if summary is not None and summary.errors:
            return ComponentHealth(
                component="scheduler",
                status=HealthStatus.WARNING,
                message=f"Last scan finished with {summary.errors} errors",
            )

        return ComponentHealth(
            component="scheduler",
            status=HealthStatus.HEALTHY,
            message=f"Last scan finished {age_seconds / 3600:.1f}h ago",
        )

    async def check_all(self, timeout: float = 5.0) -> AggregateHealth:
        """
        Check all components with timeout.

        Args:
            timeout: Maximum time for all checks in seconds
        """
        components = []
        checks = [
            ("database", self.check_database),
            ("scheduler", self.check_scheduler),
        ]

        for name, check_func in checks:
            try:
                result = await asyncio.wait_for(check_func(), timeout=timeout / len(checks))
                components.append(result)
            except asyncio.TimeoutError:
                components.append(ComponentHealth(
                    component=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{name} check timed out",
                ))
            except Exception as e:
                components.append(ComponentHealth(
                    component=name,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{name} check error: {str(e)}",
                ))

        overall_status = self._calculate_overall_status(components)
        return AggregateHealth(status=overall_status, components=components)

    def _calculate_overall_status(self, components: List[ComponentHealth]) -> HealthStatus:
        """
        Any UNHEALTHY -> UNHEALTHY
        Any DEGRADED or WARNING -> DEGRADED
        All HEALTHY -> HEALTHY
        """
        statuses = [c.status for c in components]

        if HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY
        if HealthStatus.DEGRADED in statuses or HealthStatus.WARNING in statuses:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY
