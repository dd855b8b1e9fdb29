"""
Tests for ComplianceScanner.

A scan pass is best effort: one bad contract or one failing write must
never stop the others from being evaluated.
"""
import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from contract_monitor.core.scanner import ComplianceScanner
from contract_monitor.storage.models import AlertType

NOW = datetime(2026, 10, 17, 8, 0)


@pytest.mark.asyncio
class TestRunScan:
    async def test_empty_snapshot(self, scanner: ComplianceScanner):
        summary = await scanner.run_scan()

        assert summary.contracts_scanned == 0
        assert summary.alerts_emitted == 0
        assert summary.finished_at is not None

    async def test_emits_for_due_contracts(self, scanner, mock_contracts, mock_ledger, expiring):
        mock_contracts.list_active = AsyncMock(return_value=[
            expiring(1),
            expiring(2, days=10, notice_period_days=5),
            expiring(3, days=365),
        ])

        summary = await scanner.run_scan()

        assert summary.contracts_scanned == 3
        assert summary.alerts_emitted == 3
        inserted = [(c.args[0], c.args[1]) for c in mock_ledger.insert_alert.call_args_list]
        assert inserted == [
            (1, AlertType.EXPIRY),
            (2, AlertType.EXPIRY),
            (2, AlertType.NOTICE),
        ]

    async def test_existing_unread_alerts_skipped(self, scanner, mock_contracts, mock_ledger, expiring):
        mock_contracts.list_active = AsyncMock(return_value=[expiring(1)])
        mock_ledger.alert_exists = AsyncMock(return_value=True)

        summary = await scanner.run_scan()

        assert summary.alerts_emitted == 0
        assert summary.alerts_skipped == 1

    async def test_explicit_now_overrides_clock(self, scanner, mock_contracts, expiring):
        mock_contracts.list_active = AsyncMock(return_value=[expiring(1, days=30)])

        # 31 days later the contract has already ended
        summary = await scanner.run_scan(now=NOW + timedelta(days=31))

        assert summary.alerts_emitted == 0


@pytest.mark.asyncio
class TestErrorIsolation:
    async def test_snapshot_failure_aborts_pass(self, scanner, mock_contracts, mock_ledger):
        mock_contracts.list_active = AsyncMock(side_effect=ConnectionError("db down"))

        summary = await scanner.run_scan()

        assert summary.errors == 1
        assert summary.contracts_scanned == 0
        mock_ledger.insert_alert.assert_not_awaited()

    async def test_invalid_contract_skipped(
        self, scanner, mock_contracts, mock_ledger, make_contract, expiring
    ):
        mock_contracts.list_active = AsyncMock(return_value=[
            make_contract(contract_id=1, end_date="soonish"),
            expiring(2),
        ])

        summary = await scanner.run_scan()

        assert summary.invalid_contracts == 1
        assert summary.errors == 0
        assert summary.alerts_emitted == 1
        assert mock_ledger.insert_alert.call_args.args[0] == 2

    @pytest.mark.parametrize("bad", [
        {"end_date": "0001-01-03", "notice_period_days": 5},
        {"end_date": "2026-11-20", "notice_period_days": 1_000_000},
    ])
    async def test_out_of_range_dates_skipped(
        self, scanner, mock_contracts, mock_ledger, make_contract, expiring, bad
    ):
        mock_contracts.list_active = AsyncMock(return_value=[
            make_contract(contract_id=1, **bad),
            expiring(2),
        ])

        summary = await scanner.run_scan()

        assert summary.contracts_scanned == 2
        assert summary.invalid_contracts == 1
        assert summary.errors == 0
        assert summary.alerts_emitted == 1
        assert mock_ledger.insert_alert.call_args.args[0] == 2

    async def test_write_failure_isolated_to_contract(
        self, scanner, mock_contracts, mock_ledger, expiring, make_alert_record
    ):
        mock_contracts.list_active = AsyncMock(return_value=[
            expiring(1, days=10, notice_period_days=5),
            expiring(2),
        ])

        async def insert(contract_id, alert_type, message):
            if contract_id == 1:
                raise ConnectionError("write failed")
            return make_alert_record(contract_id, alert_type, message)

        mock_ledger.insert_alert = AsyncMock(side_effect=insert)

        summary = await scanner.run_scan()

        assert summary.errors == 1
        assert summary.alerts_emitted == 1
        # Contract 1 abandoned after its first failing write
        attempted = [(c.args[0], c.args[1]) for c in mock_ledger.insert_alert.call_args_list]
        assert attempted == [(1, AlertType.EXPIRY), (2, AlertType.EXPIRY)]
        assert "contract 1" in summary.error_details[0]


@pytest.mark.asyncio
class TestStopEvent:
    async def test_stops_between_contracts(
        self, scanner, mock_contracts, mock_ledger, expiring, make_alert_record
    ):
        stop_event = asyncio.Event()
        mock_contracts.list_active = AsyncMock(return_value=[expiring(1), expiring(2), expiring(3)])

        async def insert(contract_id, alert_type, message):
            stop_event.set()
            return make_alert_record(contract_id, alert_type, message)

        mock_ledger.insert_alert = AsyncMock(side_effect=insert)

        summary = await scanner.run_scan(stop_event=stop_event)

        assert summary.interrupted is True
        assert summary.contracts_scanned == 1
        assert summary.alerts_emitted == 1

    async def test_summary_to_dict(self, scanner, mock_contracts, expiring):
        mock_contracts.list_active = AsyncMock(return_value=[expiring(1)])

        data = (await scanner.run_scan()).to_dict()

        assert data["contracts_scanned"] == 1
        assert data["alerts_emitted"] == 1
        assert data["duration_seconds"] == 0
        assert data["interrupted"] is False
