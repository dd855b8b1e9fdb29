"""
Shared test fixtures for end-to-end scan tests.

This file provides fixtures that span multiple components,
unlike component-specific fixtures in src/contract_monitor/{component}/tests/conftest.py

The in-memory ledger stands in for the alerts table. It enforces the same
"at most one unread alert per (contract, type)" rule that the partial unique
index enforces in PostgreSQL, atomically, and yields to the event loop
between the existence check and the insert so concurrent scans actually
interleave.
"""
import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from contract_monitor.core import AlertEmitter, ComplianceScanner
from contract_monitor.storage.models import AlertRecord, AlertType, Contract, ContractStatus
from contract_monitor.storage.repositories import DuplicateAlertError
from contract_monitor.visibility import Viewer, VisibilityFilter

TODAY = date(2026, 10, 17)
NOW = datetime(2026, 10, 17, 8, 0)


class InMemoryContracts:
    """Contract snapshot provider backed by a list."""

    def __init__(self, contracts: Optional[list[Contract]] = None) -> None:
        self.contracts = list(contracts or [])

    async def list_active(self) -> list[Contract]:
        await asyncio.sleep(0)
        return [c for c in self.contracts if c.status is ContractStatus.ACTIVE]

    async def list_visible(self, viewer: Viewer) -> list[Contract]:
        return VisibilityFilter.apply(viewer, self.contracts, lambda c: c.owner_id)


class InMemoryAlertLedger:
    """Alert ledger with the unread-uniqueness rule of the real schema."""

    def __init__(self, contracts: InMemoryContracts) -> None:
        self._contracts = contracts
        self._lock = asyncio.Lock()
        self._next_id = 1
        self.rows: list[AlertRecord] = []

    def _unread(self, contract_id: int, alert_type: AlertType) -> Optional[AlertRecord]:
        for row in self.rows:
            if row.contract_id == contract_id and row.alert_type is alert_type and not row.is_read:
                return row
        return None

    async def alert_exists(self, contract_id: int, alert_type: AlertType, unread_only: bool = True) -> bool:
        await asyncio.sleep(0)
        if unread_only:
            return self._unread(contract_id, alert_type) is not None
        return any(r.contract_id == contract_id and r.alert_type is alert_type for r in self.rows)

    async def insert_alert(self, contract_id: int, alert_type: AlertType, message: str) -> AlertRecord:
        await asyncio.sleep(0)
        async with self._lock:
            if self._unread(contract_id, alert_type) is not None:
                raise DuplicateAlertError(contract_id, alert_type)
            record = AlertRecord(
                id=self._next_id,
                contract_id=contract_id,
                alert_type=alert_type,
                message=message,
                created_at=datetime.now(timezone.utc),
            )
            self._next_id += 1
            self.rows.append(record)
            return record

    async def mark_read(self, alert_id: int, owner_id: Optional[int] = None) -> bool:
        for index, row in enumerate(self.rows):
            if row.id != alert_id:
                continue
            if owner_id is not None and self._owner_of(row) != owner_id:
                return False
            self.rows[index] = row.model_copy(update={"is_read": True})
            return True
        return False

    async def list_visible(self, viewer: Viewer, limit: int = 100, unread_only: bool = False) -> list[AlertRecord]:
        rows = [
            r.model_copy(update={"owner_id": self._owner_of(r)})
            for r in reversed(self.rows)
            if not (unread_only and r.is_read)
        ]
        return VisibilityFilter.apply(viewer, rows, lambda r: r.owner_id)[:limit]

    async def count_unread_visible(self, viewer: Viewer) -> int:
        return len(await self.list_visible(viewer, limit=len(self.rows) or 1, unread_only=True))

    def _owner_of(self, row: AlertRecord) -> Optional[int]:
        for contract in self._contracts.contracts:
            if contract.id == row.contract_id:
                return contract.owner_id
        return None

    def unread(self) -> list[AlertRecord]:
        return [r for r in self.rows if not r.is_read]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def contracts() -> InMemoryContracts:
    return InMemoryContracts([
        Contract(id=1, title="Office Lease", end_date=TODAY + timedelta(days=30), owner_id=7),
        Contract(
            id=2,
            title="Cleaning",
            end_date=(TODAY + timedelta(days=10)).isoformat(),
            notice_period_days=5,
            owner_id=8,
        ),
        Contract(id=3, title="Fleet", end_date=TODAY + timedelta(days=365), owner_id=7),
        Contract(id=4, title="Draft NDA", status=ContractStatus.DRAFT, end_date=TODAY + timedelta(days=5), owner_id=7),
        Contract(id=5, title="Open-ended", end_date=None, notice_period_days=30, owner_id=8),
    ])


@pytest.fixture
def ledger(contracts) -> InMemoryAlertLedger:
    return InMemoryAlertLedger(contracts)


@pytest.fixture
def scanner(contracts, ledger) -> ComplianceScanner:
    return ComplianceScanner(contracts, AlertEmitter(ledger), clock=lambda: NOW)
