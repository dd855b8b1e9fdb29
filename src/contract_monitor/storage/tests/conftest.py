"""
Test fixtures for storage repository tests.

Repositories are exercised against a mocked Database so the SQL they build
and the way they interpret results can be checked without PostgreSQL.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from contract_monitor.storage.repositories import AlertRepository, ContractRepository
from contract_monitor.visibility import Role, Viewer


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def mock_db():
    """Mock Database with async query methods."""
    db = MagicMock()
    db.execute = AsyncMock(return_value="OK")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def alert_repo(mock_db) -> AlertRepository:
    return AlertRepository(mock_db)


@pytest.fixture
def contract_repo(mock_db) -> ContractRepository:
    return ContractRepository(mock_db)


# =============================================================================
# VIEWER FIXTURES
# =============================================================================


@pytest.fixture
def admin() -> Viewer:
    return Viewer(user_id=1, role=Role.ADMIN)


@pytest.fixture
def member() -> Viewer:
    return Viewer(user_id=7, role=Role.MEMBER)


# =============================================================================
# ROW FIXTURES
# =============================================================================


@pytest.fixture
def alert_row() -> dict:
    """An alerts row as asyncpg would return it."""
    return {
        "id": 11,
        "contract_id": 3,
        "alert_type": "expiry",
        "message": 'Contract "Cleaning" expires in 30 days (2026-11-16).',
        "is_read": False,
        "created_at": datetime(2026, 10, 17, 8, 0, tzinfo=timezone.utc),
    }


@pytest.fixture
def contract_row() -> dict:
    """A contracts row as asyncpg would return it."""
    return {
        "id": 3,
        "title": "Cleaning",
        "status": "active",
        "end_date": "2026-11-16",
        "notice_period_days": None,
        "created_by": 7,
        "partner_name": "Spotless GmbH",
        "cost_amount": None,
    }
