"""
Core layer test fixtures.

Trigger tests are pure; emitter/scanner/scheduler tests run against
AsyncMock ledgers and contract providers.
"""
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from contract_monitor.core.emitter import AlertEmitter
from contract_monitor.core.scanner import ComplianceScanner
from contract_monitor.storage.models import AlertRecord, AlertType, Contract

TODAY = date(2026, 10, 17)
NOW = datetime(2026, 10, 17, 8, 0)


def _make_contract(
    contract_id: int = 1,
    title: str = "Office Lease",
    end_date=None,
    notice_period_days: int = 0,
    owner_id: int = 7,
) -> Contract:
    return Contract(
        id=contract_id,
        title=title,
        end_date=end_date,
        notice_period_days=notice_period_days,
        owner_id=owner_id,
    )


def _make_alert_record(contract_id: int, alert_type: AlertType, message: str = "msg", alert_id: int = 1):
    return AlertRecord(id=alert_id, contract_id=contract_id, alert_type=alert_type, message=message)


# =============================================================================
# Ledger / Provider Fixtures
# =============================================================================


@pytest.fixture
def mock_ledger():
    """Alert ledger with no existing alerts; inserts succeed."""
    ledger = MagicMock()
    ledger.alert_exists = AsyncMock(return_value=False)

    async def insert(contract_id, alert_type, message):
        return _make_alert_record(contract_id, alert_type, message)

    ledger.insert_alert = AsyncMock(side_effect=insert)
    return ledger


@pytest.fixture
def mock_contracts():
    provider = MagicMock()
    provider.list_active = AsyncMock(return_value=[])
    return provider


@pytest.fixture
def emitter(mock_ledger) -> AlertEmitter:
    return AlertEmitter(mock_ledger)


@pytest.fixture
def scanner(mock_contracts, emitter) -> ComplianceScanner:
    return ComplianceScanner(mock_contracts, emitter, clock=lambda: NOW)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_contract():
    """Factory for active Contract snapshots."""
    return _make_contract


@pytest.fixture
def make_alert_record():
    """Factory for AlertRecord rows returned by insert_alert."""
    return _make_alert_record


@pytest.fixture
def expiring(make_contract):
    """Factory for contracts ending a few weeks after TODAY."""
    def factory(contract_id: int, days: int = 30, **kwargs):
        return make_contract(contract_id=contract_id, end_date=TODAY + timedelta(days=days), **kwargs)
    return factory
