"""
Monitoring layer test fixtures.

Tests health checks, dashboard stats, and dashboard endpoints.
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from contract_monitor.core.scanner import ScanSummary
from contract_monitor.core.scheduler import SchedulerConfig, SchedulerState
from contract_monitor.monitoring.dashboard import Dashboard
from contract_monitor.monitoring.health_checker import (
    AggregateHealth,
    ComponentHealth,
    HealthStatus,
)
from contract_monitor.monitoring.metrics import DashboardStats
from contract_monitor.storage.models import AlertRecord, AlertType

NOW = datetime(2026, 10, 17, 9, 0)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def mock_db():
    """Mock database for unit tests."""
    db = MagicMock()
    db.execute = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    return db


# =============================================================================
# Mock Component Fixtures
# =============================================================================


@pytest.fixture
def sample_summary() -> ScanSummary:
    return ScanSummary(
        started_at=datetime(2026, 10, 17, 8, 0),
        finished_at=datetime(2026, 10, 17, 8, 1),
        contracts_scanned=12,
        alerts_emitted=3,
        alerts_skipped=5,
    )


@pytest.fixture
def mock_scheduler(sample_summary):
    """Running scheduler whose last scan finished an hour ago."""
    scheduler = MagicMock()
    scheduler.is_running = True
    scheduler.state = SchedulerState.IDLE
    scheduler.config = SchedulerConfig()
    scheduler.last_summary = sample_summary
    scheduler.last_scan_finished_at = datetime(2026, 10, 17, 8, 1)
    scheduler.scans_completed = 4
    scheduler.scans_coalesced = 1
    scheduler.seconds_until_next_run = MagicMock(return_value=82740.0)
    scheduler.run_now = AsyncMock(return_value=sample_summary)
    return scheduler


@pytest.fixture
def mock_alert_repo():
    repo = MagicMock()
    repo.list_visible = AsyncMock(return_value=[
        AlertRecord(
            id=5,
            contract_id=3,
            alert_type=AlertType.NOTICE,
            message='Action Required: Notice period for "Cleaning" deadline is 2026-10-22.',
            created_at=datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc),
            contract_title="Cleaning",
            owner_id=7,
        ),
    ])
    repo.mark_read = AsyncMock(return_value=True)
    repo.count_unread_visible = AsyncMock(return_value=1)
    return repo


@pytest.fixture
def mock_stats_collector():
    collector = MagicMock()
    collector.get_dashboard_stats = AsyncMock(return_value=DashboardStats(
        total_contracts=4,
        active_contracts=3,
        expiring_soon=1,
        unread_alerts=2,
        monthly_cost=Decimal("1250.50"),
    ))
    return collector


@pytest.fixture
def mock_health_checker():
    checker = MagicMock()
    checker.check_all = AsyncMock(return_value=AggregateHealth(
        status=HealthStatus.HEALTHY,
        components=[
            ComponentHealth(component="database", status=HealthStatus.HEALTHY, message="ok", latency_ms=1.2),
            ComponentHealth(component="scheduler", status=HealthStatus.HEALTHY, message="ok"),
        ],
    ))
    return checker


# =============================================================================
# Dashboard Fixtures
# =============================================================================


@pytest.fixture
def dashboard(mock_alert_repo, mock_stats_collector, mock_scheduler, mock_health_checker):
    return Dashboard(
        alert_repo=mock_alert_repo,
        stats_collector=mock_stats_collector,
        scheduler=mock_scheduler,
        health_checker=mock_health_checker,
        clock=lambda: NOW,
    )


@pytest.fixture
def app(dashboard, monkeypatch):
    monkeypatch.delenv("DASHBOARD_API_KEY", raising=False)
    return dashboard.create_app(testing=True)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "1", "X-User-Role": "admin"}


@pytest.fixture
def member_headers():
    return {"X-User-Id": "7", "X-User-Role": "employee"}
