"""
Monitoring Layer - Health checks, dashboard stats and the read-side API.

This module provides:
    - HealthChecker: Database and scheduler health checks with timeouts
    - HealthStatus: Health status enum (HEALTHY, DEGRADED, UNHEALTHY, WARNING)
    - ComponentHealth: Health check result for a single component
    - AggregateHealth: Overall system health aggregation
    - StatsCollector: Per-viewer dashboard numbers
    - DashboardStats: Dataclass for the stats summary
    - Dashboard / create_app: Flask read API (alerts, stats, manual scan)
"""

from .health_checker import (
    AggregateHealth,
    ComponentHealth,
    HealthChecker,
    HealthStatus,
)
from .metrics import DashboardStats, StatsCollector
from .dashboard import Dashboard, create_app

__all__ = [
    # Health checking
    "HealthChecker",
    "HealthStatus",
    "ComponentHealth",
    "AggregateHealth",
    # Stats
    "StatsCollector",
    "DashboardStats",
    # Dashboard
    "Dashboard",
    "create_app",
]
